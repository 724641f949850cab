from stream_monitor.engine.events import EventClassifier, SpikeThresholds, classify
from stream_monitor.types import ChannelSnapshot, EventFlags, EventKind


def snap(viewers=1000, chat_1min=10, category="Just Chatting", live=True, channel_id=1):
    return ChannelSnapshot(
        channel_id=channel_id,
        channel_name=f"channel{channel_id}",
        viewer_count=viewers,
        chat_rate_5s=1,
        chat_rate_1min=chat_1min,
        category=category,
        collected_at="2026-01-01T00:00:00Z",
        is_live=live,
    )


def test_first_observation_never_flags():
    assert classify(None, snap(category="X")) == EventFlags()
    assert classify(None, snap(viewers=100_000, chat_1min=10_000)) == EventFlags()


def test_category_change():
    assert classify(snap(category="X"), snap(category="Y")).category_change
    assert not classify(snap(category="X"), snap(category="X")).category_change
    # Unknown previous category is not a change
    assert not classify(snap(category=None), snap(category="Y")).category_change
    # Category going away is
    assert classify(snap(category="X"), snap(category=None)).category_change


def test_classify_is_deterministic():
    previous, current = snap(viewers=200, chat_1min=3), snap(viewers=450, chat_1min=9, category="Y")
    first = classify(previous, current)
    second = classify(previous, current)
    assert first == second
    assert first == EventFlags(viewer_spike=True, chat_spike=True, category_change=True)


def test_default_viewer_spike_needs_ratio_and_delta():
    assert classify(snap(viewers=200), snap(viewers=400)).viewer_spike
    # Ratio met, absolute growth too small
    assert not classify(snap(viewers=10), snap(viewers=30)).viewer_spike
    # Absolute growth met, ratio too small
    assert not classify(snap(viewers=1000), snap(viewers=1400)).viewer_spike
    assert not classify(snap(viewers=None), snap(viewers=1000)).viewer_spike
    assert not classify(snap(viewers=0), snap(viewers=1000)).viewer_spike
    assert not classify(snap(viewers=1000), snap(viewers=None)).viewer_spike


def test_default_chat_spike():
    # Quiet chat: a couple of messages counts
    assert classify(snap(chat_1min=0), snap(chat_1min=2)).chat_spike
    assert not classify(snap(chat_1min=0), snap(chat_1min=1)).chat_spike
    assert classify(snap(chat_1min=10), snap(chat_1min=20)).chat_spike
    assert not classify(snap(chat_1min=10), snap(chat_1min=19)).chat_spike


def test_custom_thresholds():
    classifier = EventClassifier(thresholds=SpikeThresholds(viewer_ratio=1.1, viewer_min_delta=5))
    assert classifier.classify(snap(viewers=100), snap(viewers=111)).viewer_spike


def test_injected_predicates_see_only_the_pair():
    calls = []

    def always(previous, current):
        calls.append((previous, current))
        return True

    classifier = EventClassifier(viewer_spike=always, chat_spike=lambda p, c: False)
    previous, current = snap(), snap(viewers=1)
    flags = classifier.classify(previous, current)

    assert flags == EventFlags(viewer_spike=True, chat_spike=False, category_change=False)
    assert calls == [(previous, current)]


def test_offline_channel_never_flags():
    assert classify(snap(category="X", viewers=100), snap(category=None, viewers=None, live=False)) == EventFlags()


def test_flag_kinds_order():
    flags = EventFlags(viewer_spike=True, chat_spike=True, category_change=True)
    assert flags.kinds() == [EventKind.VIEWER_SPIKE, EventKind.CHAT_SPIKE, EventKind.CATEGORY_CHANGE]
    assert EventFlags(category_change=True).kinds() == [EventKind.CATEGORY_CHANGE]
    assert EventFlags().kinds() == []

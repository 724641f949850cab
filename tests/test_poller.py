import asyncio

from stream_monitor.datafeed.backend_client import BackendError
from stream_monitor.datafeed.poller import UPDATE_QUEUE_SIZE, MultiviewPoller
from stream_monitor.engine.timeline import TimelineBuffer
from stream_monitor.types import ChannelSnapshot, EventFlags, EventKind


def snap(channel_id, viewers=1000, chat_1min=10, category="Just Chatting", live=True):
    return ChannelSnapshot(
        channel_id=channel_id,
        channel_name=f"channel{channel_id}",
        viewer_count=viewers,
        chat_rate_5s=0,
        chat_rate_1min=chat_1min,
        category=category,
        collected_at=None,
        is_live=live,
    )


class FakeSource:
    """Serves scripted snapshots per channel; None entries raise BackendError."""

    def __init__(self, script):
        self.script = {cid: list(items) for cid, items in script.items()}
        self.calls = []
        self.on_fetch = None

    async def fetch_multiview_stats(self, channel_ids):
        ids = list(channel_ids)
        self.calls.append(ids)
        if self.on_fetch is not None:
            self.on_fetch()
        result = []
        for cid in ids:
            item = self.script[cid].pop(0)
            if item is None:
                raise BackendError(f"channel {cid} unavailable")
            result.append(item)
        return result


def test_first_tick_has_no_events():
    poller = MultiviewPoller(FakeSource({}), [1, 2])
    update = poller.process_tick([snap(1, category="X"), snap(2)])

    assert update.tick == 1
    assert [s.flags for s in update.channels] == [EventFlags(), EventFlags()]
    assert update.recent == ()
    assert set(poller.last_snapshots) == {1, 2}


def test_events_are_recorded_per_flag():
    poller = MultiviewPoller(FakeSource({}), [1, 2])
    poller.process_tick([snap(1, viewers=200, chat_1min=5, category="X"), snap(2)])
    update = poller.process_tick([snap(1, viewers=600, chat_1min=20, category="Y"), snap(2)])

    assert update.channels[0].flags == EventFlags(True, True, True)
    assert update.channels[1].flags == EventFlags()
    # Newest first, all from the same channel and tick
    assert [e.kind for e in update.recent] == [
        EventKind.CATEGORY_CHANGE, EventKind.CHAT_SPIKE, EventKind.VIEWER_SPIKE,
    ]
    assert {(e.channel_name, e.tick) for e in update.recent} == {("channel1", 2)}


def test_channels_are_classified_independently():
    poller = MultiviewPoller(FakeSource({}), [1, 2])
    poller.process_tick([snap(1, category="X")])
    # Channel 2 first seen at tick 2; channel 1 compared with its own tick 1
    update = poller.process_tick([snap(2, category="Z"), snap(1, category="Y")])

    flags = {s.snapshot.channel_id: s.flags for s in update.channels}
    assert flags[2] == EventFlags()
    assert flags[1] == EventFlags(category_change=True)


def test_set_channels_forgets_deselected_history():
    poller = MultiviewPoller(FakeSource({}), [1, 2])
    poller.process_tick([snap(1, category="X"), snap(2, category="X")])

    poller.set_channels([2, 3])
    assert poller.channel_ids == [2, 3]
    assert set(poller.last_snapshots) == {2}

    poller.set_channels([1, 2])
    update = poller.process_tick([snap(1, category="Y"), snap(2, category="Y")])
    flags = {s.snapshot.channel_id: s.flags for s in update.channels}
    assert flags[1] == EventFlags()
    assert flags[2].category_change


def test_update_queue_drops_oldest():
    poller = MultiviewPoller(FakeSource({}), [1])
    for _ in range(UPDATE_QUEUE_SIZE + 2):
        poller.process_tick([snap(1)])

    ticks = []
    while not poller.update_queue.empty():
        ticks.append(poller.update_queue.get_nowait().tick)
    assert ticks == [3, 4, 5, 6, 7]


def test_feed_size_limits_recent_entries():
    poller = MultiviewPoller(FakeSource({}), [1], timeline=TimelineBuffer(10), feed_size=2)
    poller.process_tick([snap(1, category="A")])
    for category in ("B", "C", "D"):
        update = poller.process_tick([snap(1, category=category)])
    assert len(update.recent) == 2
    assert len(poller.timeline) == 3


def test_poll_once_skips_failed_channel():
    source = FakeSource({
        1: [snap(1, category="X"), snap(1, category="Y")],
        2: [snap(2, category="X"), None],
    })
    poller = MultiviewPoller(source, [1, 2])

    first = asyncio.run(poller.poll_once())
    second = asyncio.run(poller.poll_once())

    assert len(first.channels) == 2
    assert [s.snapshot.channel_id for s in second.channels] == [1]
    assert second.channels[0].flags.category_change
    # Failed channel has no previous snapshot for the next tick
    assert 2 not in poller.last_snapshots
    assert poller.last_snapshots[1].category == "Y"
    assert sorted(source.calls) == [[1], [1], [2], [2]]


def test_missed_tick_is_not_compared_with_older_snapshot():
    source = FakeSource({1: [snap(1, category="A"), None, snap(1, category="B"), snap(1, category="C")]})
    poller = MultiviewPoller(source, [1])

    updates = [asyncio.run(poller.poll_once()) for _ in range(4)]

    assert [u.tick for u in updates] == [1, 2, 3, 4]
    assert updates[1].channels == []
    # Tick 3 follows a missed tick: first observation again
    assert updates[2].channels[0].flags == EventFlags()
    assert updates[3].channels[0].flags == EventFlags(category_change=True)
    assert [(e.kind, e.tick) for e in poller.timeline.read_recent(5)] == [
        (EventKind.CATEGORY_CHANGE, 4),
    ]


def test_stop_during_fetch_discards_tick():
    source = FakeSource({1: [snap(1, category="X"), snap(1, category="Y")]})
    poller = MultiviewPoller(source, [1])
    asyncio.run(poller.poll_once())

    source.on_fetch = poller.stop
    assert asyncio.run(poller.poll_once()) is None
    assert poller.tick == 1
    assert poller.last_snapshots[1].category == "X"
    assert len(poller.timeline) == 0


def test_run_polls_until_stopped():
    source = FakeSource({1: [snap(1, category=c) for c in ("A", "B", "C")]})
    poller = MultiviewPoller(source, [1], interval_sec=0)

    def stop_on_third_fetch():
        if len(source.calls) == 3:
            poller.stop()

    source.on_fetch = stop_on_third_fetch
    asyncio.run(asyncio.wait_for(poller.run(), timeout=5))

    assert poller.tick == 2
    assert [e.kind for e in poller.timeline.read_recent(5)] == [EventKind.CATEGORY_CHANGE]

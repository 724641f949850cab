"""
Live event classification for the multiview monitor.

classify() compares a channel's current snapshot with the previous one of the
same channel and nothing else. Spike rules are injected predicates; the
defaults below use the thresholds the backend used for its own detection.
"""

from __future__ import annotations

from typing import Callable, NamedTuple

from ..types import ChannelSnapshot, EventFlags

SpikePredicate = Callable[[ChannelSnapshot, ChannelSnapshot], bool]

DEFAULT_VIEWER_SPIKE_RATIO = 1.5
DEFAULT_VIEWER_SPIKE_MIN_DELTA = 100
DEFAULT_CHAT_SPIKE_RATIO = 2.0
DEFAULT_CHAT_SPIKE_MIN_MESSAGES = 2


class SpikeThresholds(NamedTuple):
    """
    Tunables for the default spike predicates.

    viewer_ratio / viewer_min_delta: growth factor AND absolute growth, the
        latter keeps small channels from flagging on a handful of viewers.
    chat_ratio: growth factor of the 1-minute chat rate.
    chat_min_messages: absolute rate that counts as a spike when the previous
        rate was (almost) zero.
    """
    viewer_ratio: float = DEFAULT_VIEWER_SPIKE_RATIO
    viewer_min_delta: int = DEFAULT_VIEWER_SPIKE_MIN_DELTA
    chat_ratio: float = DEFAULT_CHAT_SPIKE_RATIO
    chat_min_messages: int = DEFAULT_CHAT_SPIKE_MIN_MESSAGES


def viewer_spike_rule(thresholds: SpikeThresholds) -> SpikePredicate:
    def is_viewer_spike(previous: ChannelSnapshot, current: ChannelSnapshot) -> bool:
        before, now = previous.viewer_count, current.viewer_count
        if before is None or now is None or before <= 0:
            return False
        return (
            now / before >= thresholds.viewer_ratio
            and now - before >= thresholds.viewer_min_delta
        )
    return is_viewer_spike


def chat_spike_rule(thresholds: SpikeThresholds) -> SpikePredicate:
    def is_chat_spike(previous: ChannelSnapshot, current: ChannelSnapshot) -> bool:
        baseline = previous.chat_rate_1min
        if baseline < 1:
            return current.chat_rate_1min >= thresholds.chat_min_messages
        return current.chat_rate_1min / baseline >= thresholds.chat_ratio
    return is_chat_spike


class EventClassifier:
    """
    Turns (previous, current) snapshot pairs into EventFlags.

    Holds only its predicates; calling classify() twice with the same inputs
    gives the same result.
    """

    __slots__ = ('viewer_spike', 'chat_spike')

    def __init__(
        self,
        viewer_spike: SpikePredicate | None = None,
        chat_spike: SpikePredicate | None = None,
        thresholds: SpikeThresholds | None = None,
    ) -> None:
        thresholds = thresholds or SpikeThresholds()
        self.viewer_spike = viewer_spike or viewer_spike_rule(thresholds)
        self.chat_spike = chat_spike or chat_spike_rule(thresholds)

    def classify(self, previous: ChannelSnapshot | None, current: ChannelSnapshot) -> EventFlags:
        """
        Flags for `current` given the channel's previous snapshot.

        First observation (no previous) and offline channels never flag. An
        offline current snapshot overrides the category rule, so a channel
        going offline is not a category change.
        """
        if previous is None or not current.is_live:
            return EventFlags()

        category_change = (
            previous.category is not None
            and previous.category != current.category
        )
        return EventFlags(
            viewer_spike=bool(self.viewer_spike(previous, current)),
            chat_spike=bool(self.chat_spike(previous, current)),
            category_change=category_change,
        )


_default_classifier = EventClassifier()


def classify(previous: ChannelSnapshot | None, current: ChannelSnapshot) -> EventFlags:
    """classify() with the default thresholds."""
    return _default_classifier.classify(previous, current)

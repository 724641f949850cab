"""
Data types for Stream Monitor.

Notes:
- NamedTuple for immutable snapshots, flags and timeline entries
- Sort keys are a tagged variant (FieldKey / RatioKey); the "num/den" string
  form only exists at the parsing boundary in engine.sorting
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, NamedTuple, Union

# A ranking row as returned by the query service: field -> number | str | None
Record = Mapping[str, Any]


class SortDirection(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"
    NONE = "none"


class FieldKey(NamedTuple):
    """Sort by a plain record field."""
    name: str


class RatioKey(NamedTuple):
    """Sort by numerator / denominator of two record fields (e.g. peak/average CCU)."""
    numerator: str
    denominator: str


SortKey = Union[FieldKey, RatioKey]


class SortState(NamedTuple):
    """Active sort of one table view."""
    key: SortKey | None
    direction: SortDirection


class EventKind(Enum):
    VIEWER_SPIKE = "viewer_spike"
    CHAT_SPIKE = "chat_spike"
    CATEGORY_CHANGE = "category_change"


class ChannelSnapshot(NamedTuple):
    """
    One channel's live metrics captured at a poll tick.

    chat_rate_5s / chat_rate_1min are message counts over the short and long
    windows as computed by the backend.
    """
    channel_id: int
    channel_name: str
    viewer_count: int | None
    chat_rate_5s: int
    chat_rate_1min: int
    category: str | None
    collected_at: str | None  # ISO timestamp from the backend
    stream_id: int | None = None
    is_live: bool = True
    title: str | None = None


class EventFlags(NamedTuple):
    """Events detected for one channel at one tick."""
    viewer_spike: bool = False
    chat_spike: bool = False
    category_change: bool = False

    def kinds(self) -> list[EventKind]:
        """True flags as EventKinds, in declaration order."""
        result: list[EventKind] = []
        if self.viewer_spike:
            result.append(EventKind.VIEWER_SPIKE)
        if self.chat_spike:
            result.append(EventKind.CHAT_SPIKE)
        if self.category_change:
            result.append(EventKind.CATEGORY_CHANGE)
        return result


class TimelineEntry(NamedTuple):
    """Single item of the event feed. seq is the buffer insertion order."""
    channel_name: str
    kind: EventKind
    seq: int
    tick: int


class ChannelStatus(NamedTuple):
    """Latest snapshot of a channel together with the flags it produced."""
    snapshot: ChannelSnapshot
    flags: EventFlags


class MonitorUpdate(NamedTuple):
    """
    Complete multiview state for UI rendering.

    Pushed to the UI queue once per poll tick.
    """
    tick: int
    channels: list[ChannelStatus]  # Selection order
    recent: tuple[TimelineEntry, ...]  # Most recent first
    timestamp_ms: int

"""
Bounded event timeline feeding the multiview event feed.

One writer (the poll loop), any number of readers (UI). A lock guards every
access so readers only ever see whole appends.
"""

from __future__ import annotations

import threading
from collections import deque
from itertools import islice

from ..types import EventKind, TimelineEntry

DEFAULT_CAPACITY = 20


class TimelineBuffer:
    """
    Fixed-capacity recency log. Newest entry at the head, oldest evicted first.
    """

    __slots__ = ('_capacity', '_entries', '_next_seq', '_lock')

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        # deque(maxlen) drops from the right when appending on the left
        self._entries: deque[TimelineEntry] = deque(maxlen=capacity)
        self._next_seq = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, entry: TimelineEntry) -> None:
        """Insert `entry` as the most recent one."""
        with self._lock:
            self._entries.appendleft(entry)
            self._next_seq = max(self._next_seq, entry.seq + 1)

    def record(self, channel_name: str, kind: EventKind, tick: int) -> TimelineEntry:
        """Create the next entry in insertion order and append it."""
        with self._lock:
            entry = TimelineEntry(channel_name, kind, self._next_seq, tick)
            self._next_seq += 1
            self._entries.appendleft(entry)
        return entry

    def read_recent(self, n: int) -> tuple[TimelineEntry, ...]:
        """Up to `n` entries, most recent first."""
        if n <= 0:
            return ()
        with self._lock:
            return tuple(islice(self._entries, n))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

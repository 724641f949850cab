"""
Multiview poll loop.

Each tick:
1. Fan out one realtime-stats fetch per selected channel
2. Fan in, classify every snapshot against that channel's previous one
3. Record one timeline entry per detected event
4. Push a MonitorUpdate to the UI queue (drop oldest when full)

The poller is the only writer of its TimelineBuffer and of the per-channel
last-snapshot store.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import time
from typing import Iterable, Protocol

from ..engine.events import EventClassifier
from ..engine.timeline import TimelineBuffer
from ..types import ChannelSnapshot, ChannelStatus, MonitorUpdate
from .backend_client import BackendError

log = logging.getLogger(__name__)

DEFAULT_INTERVAL_SEC = 5.0
UPDATE_QUEUE_SIZE = 5


class StatsSource(Protocol):
    async def fetch_multiview_stats(self, channel_ids: Iterable[int]) -> list[ChannelSnapshot]: ...


class MultiviewPoller:
    """
    Polls realtime stats for a set of channels and classifies events.

    Usage:
        poller = MultiviewPoller(client, [12, 34])
        task = asyncio.create_task(poller.run())
        update = poller.update_queue.get()
    """

    def __init__(
        self,
        source: StatsSource,
        channel_ids: Iterable[int],
        interval_sec: float = DEFAULT_INTERVAL_SEC,
        classifier: EventClassifier | None = None,
        timeline: TimelineBuffer | None = None,
        feed_size: int | None = None,
    ) -> None:
        self.source = source
        self.interval_sec = interval_sec
        self.classifier = classifier or EventClassifier()
        self.timeline = timeline if timeline is not None else TimelineBuffer()
        self.feed_size = feed_size or self.timeline.capacity

        self._channel_ids: list[int] = list(dict.fromkeys(channel_ids))
        # channel id -> snapshot of the previous tick, absent after a missed tick
        self.last_snapshots: dict[int, ChannelSnapshot] = {}
        self.tick = 0
        self._stopping = False

        # Output queue for UI - thread-safe for consumers on other threads
        self.update_queue: queue.Queue[MonitorUpdate] = queue.Queue(maxsize=UPDATE_QUEUE_SIZE)

    @property
    def channel_ids(self) -> list[int]:
        return list(self._channel_ids)

    def set_channels(self, channel_ids: Iterable[int]) -> None:
        """Replace the selection. Forget history of deselected channels."""
        self._channel_ids = list(dict.fromkeys(channel_ids))
        selected = set(self._channel_ids)
        for cid in list(self.last_snapshots):
            if cid not in selected:
                del self.last_snapshots[cid]

    def process_tick(self, snapshots: Iterable[ChannelSnapshot]) -> MonitorUpdate:
        """Classify one tick's snapshots and publish the result."""
        self.tick += 1
        statuses: list[ChannelStatus] = []

        for snapshot in snapshots:
            previous = self.last_snapshots.get(snapshot.channel_id)
            flags = self.classifier.classify(previous, snapshot)
            self.last_snapshots[snapshot.channel_id] = snapshot
            statuses.append(ChannelStatus(snapshot, flags))

            for kind in flags.kinds():
                self.timeline.record(snapshot.channel_name, kind, self.tick)
                log.info("tick %d: %s %s", self.tick, snapshot.channel_name, kind.value)

        update = MonitorUpdate(
            tick=self.tick,
            channels=statuses,
            recent=self.timeline.read_recent(self.feed_size),
            timestamp_ms=int(time.time() * 1000),
        )
        self._publish(update)
        return update

    def _publish(self, update: MonitorUpdate) -> None:
        """Non-blocking put; drops the oldest update when the queue is full."""
        try:
            self.update_queue.put_nowait(update)
        except queue.Full:
            try:
                self.update_queue.get_nowait()
            except queue.Empty:
                pass
            self.update_queue.put_nowait(update)

    async def _fetch_channel(self, channel_id: int) -> ChannelSnapshot | None:
        try:
            snapshots = await self.source.fetch_multiview_stats([channel_id])
        except BackendError as exc:
            log.warning("channel %s: fetch failed, skipping this tick: %s", channel_id, exc)
            return None
        for snapshot in snapshots:
            if snapshot.channel_id == channel_id:
                return snapshot
        log.warning("channel %s: no stats in response", channel_id)
        return None

    async def poll_once(self) -> MonitorUpdate | None:
        """
        Run one tick. Returns None when the poller was stopped while fetching;
        that tick's data is discarded.
        """
        channel_ids = list(self._channel_ids)
        results = await asyncio.gather(*(self._fetch_channel(cid) for cid in channel_ids))

        if self._stopping:
            log.debug("stopped mid-tick, discarding %d results", len(results))
            return None

        # A channel that missed this tick starts over as a first observation
        for cid, snapshot in zip(channel_ids, results):
            if snapshot is None:
                self.last_snapshots.pop(cid, None)

        return self.process_tick(s for s in results if s is not None)

    async def run(self) -> None:
        """
        Main run loop. Polls every interval_sec until stop() or cancellation.

        Pushes MonitorUpdate to self.update_queue for UI consumption.
        """
        self._stopping = False
        log.info("polling %d channels every %.1fs", len(self._channel_ids), self.interval_sec)
        while not self._stopping:
            started = time.perf_counter()
            await self.poll_once()
            elapsed = time.perf_counter() - started
            await asyncio.sleep(max(0.0, self.interval_sec - elapsed))

    def stop(self) -> None:
        """Signal the poller to stop."""
        self._stopping = True

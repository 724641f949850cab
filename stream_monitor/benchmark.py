#!/usr/bin/env python3
"""
Micro-benchmark for Stream Monitor hot paths.

Tests:
1. Ranking sort throughput (plain field and ratio keys)
2. Event classification throughput
3. Full tick processing (classify + timeline + publish)

Usage:
    python -m stream_monitor.benchmark
"""

from __future__ import annotations

import random
import string
import time
from statistics import mean, stdev

from .datafeed.poller import MultiviewPoller
from .engine.events import EventClassifier
from .engine.sorting import compute_order, parse_sort_key
from .types import ChannelSnapshot, SortDirection, SortState


def generate_mock_records(count: int = 1000) -> list[dict]:
    """Generate mock broadcaster ranking rows, some with gaps."""
    records = []
    for i in range(count):
        average_ccu = random.uniform(0, 5000)
        records.append({
            'channel_id': i,
            'channel_name': ''.join(random.choices(string.ascii_letters, k=10)),
            'minutes_watched': random.randint(0, 10_000_000) if random.random() > 0.05 else None,
            'average_ccu': average_ccu if random.random() > 0.1 else 0,
            'peak_ccu': average_ccu * random.uniform(1, 3),
            'avg_chat_rate': str(round(random.uniform(0, 300), 2)),
        })
    return records


def generate_mock_snapshot(channel_id: int, tick: int) -> ChannelSnapshot:
    """Generate a mock channel snapshot with occasional spikes."""
    viewers = random.randint(100, 2000)
    if random.random() < 0.05:
        viewers *= 3
    return ChannelSnapshot(
        channel_id=channel_id,
        channel_name=f"channel_{channel_id}",
        viewer_count=viewers,
        chat_rate_5s=random.randint(0, 20),
        chat_rate_1min=random.randint(0, 200),
        category=random.choice(["Just Chatting", "Deadlock", "Minecraft"]) if random.random() < 0.1 else "Just Chatting",
        collected_at=f"2026-01-01T00:00:{tick % 60:02d}Z",
    )


def _report(name: str, times: list[float]) -> None:
    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0
    print(f"  {name}")
    print(f"    Avg time: {avg_time:.3f}ms")
    print(f"    Std dev: {std_time:.3f}ms")
    print(f"    Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_sorting(iterations: int = 200) -> None:
    """Benchmark compute_order on a 1000-row ranking."""
    print("\n=== Ranking Sort Benchmark ===")

    records = generate_mock_records()
    states = {
        'field (numeric)': SortState(parse_sort_key('minutes_watched'), SortDirection.DESCENDING),
        'field (numeric strings)': SortState(parse_sort_key('avg_chat_rate'), SortDirection.ASCENDING),
        'field (text)': SortState(parse_sort_key('channel_name'), SortDirection.ASCENDING),
        'ratio': SortState(parse_sort_key('peak_ccu/average_ccu'), SortDirection.DESCENDING),
    }

    for name, state in states.items():
        times = []
        for _ in range(iterations):
            start = time.perf_counter()
            compute_order(records, state)
            times.append(time.perf_counter() - start)
        _report(name, times)


def benchmark_classifier(iterations: int = 100_000) -> None:
    """Benchmark classify() on consecutive snapshot pairs."""
    print("\n=== Event Classifier Benchmark ===")

    classifier = EventClassifier()
    pairs = [
        (generate_mock_snapshot(1, i), generate_mock_snapshot(1, i + 1))
        for i in range(1000)
    ]

    start = time.perf_counter()
    for i in range(iterations):
        previous, current = pairs[i % len(pairs)]
        classifier.classify(previous, current)
    elapsed = time.perf_counter() - start

    print(f"  Pairs classified: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {iterations / elapsed:,.0f} pairs/sec")
    print(f"  Per pair: {elapsed/iterations*1_000_000:.2f}µs")


class _NoSource:
    async def fetch_multiview_stats(self, channel_ids):
        return []


def benchmark_ticks(iterations: int = 2000, channels: int = 12) -> None:
    """Benchmark full tick processing for a multiview of `channels` tiles."""
    print("\n=== Tick Processing Benchmark ===")

    poller = MultiviewPoller(_NoSource(), range(channels))
    ticks = [
        [generate_mock_snapshot(cid, t) for cid in range(channels)]
        for t in range(iterations)
    ]

    times = []
    for snapshots in ticks:
        start = time.perf_counter()
        poller.process_tick(snapshots)
        times.append(time.perf_counter() - start)

    _report(f"{channels} channels/tick, {len(poller.timeline)} events buffered", times)


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Stream Monitor Performance Benchmark")
    print("=" * 60)

    benchmark_sorting()
    benchmark_classifier()
    benchmark_ticks()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()

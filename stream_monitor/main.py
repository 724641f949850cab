#!/usr/bin/env python3
"""
Stream Monitor - live-stream analytics monitor.

Usage:
    python -m stream_monitor.main monitor 12 34 56 --interval 5
    python -m stream_monitor.main rank channels --sort "peak_ccu/average_ccu" --toggle 2

Environment:
    STREAM_MONITOR_BACKEND_URL, STREAM_MONITOR_POLL_INTERVAL_SEC, ...
    (see stream_monitor.config)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import queue
import sys

from pydantic import ValidationError
from rich.console import Console

from .config import MonitorConfig

log = logging.getLogger("stream_monitor")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


async def run_monitor(config: MonitorConfig, channel_ids: list[int], console: Console) -> None:
    """Run the poll loop and print each new feed entry and channel status."""

    # Import here to avoid slow startup for --help
    from .datafeed.backend_client import BackendClient
    from .datafeed.poller import MultiviewPoller
    from .engine.events import EventClassifier
    from .engine.timeline import TimelineBuffer
    from .ui.console import render_channel_status, render_entry

    console.print(f"Monitoring {len(channel_ids)} channels via {config.backend_url}")
    console.print(f"  Interval: {config.poll_interval_sec}s  Timeline: {config.timeline_size}")

    async with BackendClient(config.backend_url, config.timeout_sec) as client:
        poller = MultiviewPoller(
            client,
            channel_ids,
            interval_sec=config.poll_interval_sec,
            classifier=EventClassifier(thresholds=config.spike_thresholds),
            timeline=TimelineBuffer(config.timeline_size),
        )
        poll_task = asyncio.create_task(poller.run())

        last_seq = -1
        try:
            while not poll_task.done():
                try:
                    update = poller.update_queue.get_nowait()
                except queue.Empty:
                    await asyncio.sleep(0.2)
                    continue

                console.rule(f"tick {update.tick}", style="dim")
                for status in update.channels:
                    console.print(render_channel_status(status))
                # recent is newest first; print oldest new entry first
                for entry in reversed(update.recent):
                    if entry.seq > last_seq:
                        console.print(render_entry(entry))
                if update.recent:
                    last_seq = max(last_seq, update.recent[0].seq)
            # Surface a crash of the poll loop
            poll_task.result()
        finally:
            poller.stop()
            poll_task.cancel()
            try:
                await poll_task
            except asyncio.CancelledError:
                pass


async def run_rank(
    config: MonitorConfig,
    table_name: str,
    sort_key: str | None,
    toggles: int,
    start_time: str | None,
    end_time: str | None,
    limit: int,
    console: Console,
) -> None:
    """Fetch one ranking table and print it in sorted order."""
    from .datafeed.backend_client import BackendClient
    from .engine.rankings import RANKING_TABLES, RankingView
    from .engine.sorting import parse_sort_key
    from .types import FieldKey
    from .ui.console import render_ranking_header, render_ranking_row

    table = RANKING_TABLES[table_name]
    view = RankingView(table.default_sort)

    async with BackendClient(config.backend_url, config.timeout_sec) as client:
        ticket = view.begin_query((table.name, start_time, end_time))
        records = await client.fetch_ranking(table, start_time, end_time)
    view.apply_result(ticket, records)

    # Each toggle is one click on the column header, starting from unsorted
    if sort_key:
        view.clear_sort()
        for _ in range(max(1, toggles)):
            view.request_sort(sort_key)

    columns = [FieldKey(table.label_field)]
    active = view.sort_state.key or table.default_sort.key
    if active is not None and active not in columns:
        columns.append(active)
    for name in ("minutes_watched", "average_ccu"):
        if parse_sort_key(name) not in columns:
            columns.append(parse_sort_key(name))

    console.print(render_ranking_header(view.sort_state, columns))
    for rank, record in enumerate(view.ordered()[:limit], start=1):
        console.print(render_ranking_row(rank, record, columns))


def cli() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Stream Monitor - rankings and live multiview event feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m stream_monitor.main monitor 12 34
    python -m stream_monitor.main rank games --sort average_ccu
    python -m stream_monitor.main rank channels --sort "peak_ccu/average_ccu" --toggle 2
        """
    )

    parser.add_argument(
        "--backend-url",
        default=None,
        help="Backend base URL (default: $STREAM_MONITOR_BACKEND_URL or http://127.0.0.1:8787)"
    )

    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: $STREAM_MONITOR_LOG_LEVEL or INFO)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    monitor = sub.add_parser("monitor", help="Poll channels and print detected events")
    monitor.add_argument("channel_ids", nargs="+", type=int, help="Channel ids to monitor")
    monitor.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Poll interval in seconds (default: 5)"
    )
    monitor.add_argument(
        "--timeline-size",
        type=int,
        default=None,
        help="Number of events kept in the feed (default: 20)"
    )

    rank = sub.add_parser("rank", help="Print a ranking table")
    rank.add_argument("table", choices=["channels", "games"])
    rank.add_argument("--sort", default=None, help='Field or "numerator/denominator" ratio')
    rank.add_argument(
        "--toggle",
        type=int,
        default=1,
        help="Header clicks on the --sort key, counted from unsorted: 1=ascending, 2=descending, 3=unsorted (default: 1)"
    )
    rank.add_argument("--start", default=None, help="Range start (ISO timestamp)")
    rank.add_argument("--end", default=None, help="Range end (ISO timestamp)")
    rank.add_argument("--limit", type=int, default=30, help="Rows to print (default: 30)")

    args = parser.parse_args()

    try:
        config = MonitorConfig.from_env().with_overrides(
            backend_url=args.backend_url,
            log_level=args.log_level,
            poll_interval_sec=getattr(args, "interval", None),
            timeline_size=getattr(args, "timeline_size", None),
        )
    except ValidationError as exc:
        parser.error(f"invalid configuration: {exc}")
    setup_logging(config.log_level)
    console = Console()

    from .datafeed.backend_client import BackendError

    try:
        if args.command == "monitor":
            asyncio.run(run_monitor(config, args.channel_ids, console))
        else:
            asyncio.run(run_rank(
                config, args.table, args.sort, args.toggle,
                args.start, args.end, args.limit, console,
            ))
    except BackendError as exc:
        log.error("backend error: %s", exc)
        sys.exit(1)
    except ValueError as exc:
        log.error("invalid configuration: %s", exc)
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()

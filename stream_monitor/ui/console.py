"""
Console output for the monitor and ranking commands, built from Rich Text.

Displays:
- Event feed lines (channel + event label, colored per kind)
- One status line per monitored channel
- Ranking rows with the active sort column marked
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from rich.text import Text

from ..engine.sorting import format_sort_key, resolve_sort_value, sort_indicator
from ..types import EventKind

if TYPE_CHECKING:
    from ..types import ChannelStatus, Record, SortKey, SortState, TimelineEntry

# Color scheme (dark theme)
VIEWER_SPIKE_COLOR = "#3b82f6"   # Blue
CHAT_SPIKE_COLOR = "#22c55e"     # Green
CATEGORY_CHANGE_COLOR = "#f59e0b"  # Amber
OFFLINE_COLOR = "#64748b"
HEADER_COLOR = "#94a3b8"

EVENT_LABELS = {
    EventKind.VIEWER_SPIKE: "viewer spike",
    EventKind.CHAT_SPIKE: "chat spike",
    EventKind.CATEGORY_CHANGE: "category change",
}

EVENT_COLORS = {
    EventKind.VIEWER_SPIKE: VIEWER_SPIKE_COLOR,
    EventKind.CHAT_SPIKE: CHAT_SPIKE_COLOR,
    EventKind.CATEGORY_CHANGE: CATEGORY_CHANGE_COLOR,
}


def format_count(value: float | None) -> str:
    """Format a viewer/message count for display."""
    if value is None:
        return "-"
    if abs(value) >= 1_000_000:
        return f"{value/1_000_000:.1f}M"
    if abs(value) >= 1000:
        return f"{value/1000:.1f}K"
    if float(value).is_integer():
        return f"{int(value)}"
    return f"{value:.2f}"


def render_entry(entry: TimelineEntry) -> Text:
    """One event feed line: ● channel  label."""
    color = EVENT_COLORS[entry.kind]
    line = Text()
    line.append("● ", style=color)
    line.append(f"{entry.channel_name:<20} ", style="bold")
    line.append(EVENT_LABELS[entry.kind], style=color)
    line.append(f"  #{entry.tick}", style="dim")
    return line


def render_channel_status(status: ChannelStatus) -> Text:
    snap, flags = status.snapshot, status.flags

    line = Text()
    line.append(f" {snap.channel_name:<20} ", style="bold white on #1e40af")
    if not snap.is_live:
        line.append("  offline", style=OFFLINE_COLOR)
        return line

    line.append("  Viewers: ", style="dim")
    line.append(format_count(snap.viewer_count),
                style=VIEWER_SPIKE_COLOR if flags.viewer_spike else "cyan")
    line.append("  Chat/min: ", style="dim")
    line.append(format_count(snap.chat_rate_1min),
                style=CHAT_SPIKE_COLOR if flags.chat_spike else "cyan")
    line.append("  Chat/5s: ", style="dim")
    line.append(format_count(snap.chat_rate_5s), style="cyan")
    line.append("  │  ", style="dim")
    line.append(snap.category or "-",
                style=CATEGORY_CHANGE_COLOR if flags.category_change else "white")
    return line


def render_ranking_header(state: SortState, columns: Sequence[SortKey]) -> Text:
    header = Text(style=HEADER_COLOR)
    header.append(f"{'#':>4}  ")
    for key in columns:
        title = f"{format_sort_key(key)}{sort_indicator(state, key)}"
        header.append(f"{title:>24}")
    return header


def render_ranking_row(rank: int, record: Record, columns: Sequence[SortKey]) -> Text:
    row = Text()
    row.append(f"{rank:>4}  ", style="dim")
    for key in columns:
        value = resolve_sort_value(record, key)
        if value is None:
            cell = "-"
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            cell = format_count(value)
        else:
            cell = str(value)
        row.append(f"{cell:>24}")
    return row

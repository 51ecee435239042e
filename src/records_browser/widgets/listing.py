"""Row/cell rendering helpers and the pagination status line for record tables."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from records_browser.models import MODE_SNAPSHOT, ListWindowState, Record
from records_browser.query import (
    escape_rich_text,
    format_page_range,
    render_progress_bar,
    truncate_text,
)

CELL_MAX_LEN = 40  # Max characters shown per table cell
PROGRESS_BAR_WIDTH = 8

# Monokai-inspired palette shared by the list chrome
THEME_COLORS = {
    "accent": "#66d9ef",
    "green": "#a6e22e",
    "yellow": "#e6db74",
    "orange": "#fd971f",
    "pink": "#f92672",
    "muted": "#75715e",
}

ID_FIELDS = ("id", "conversation_id", "_id")
SOURCE_FIELDS = ("recording_url", "audio_url", "recording")
HIDDEN_COLUMNS = frozenset({"id", "_id", "transcript", *SOURCE_FIELDS})

PLAY_ICON = "▶"
STOP_ICON = "■"


def record_id(record: Record) -> str | None:
    """Stable identity of a record, preferring ``id`` over ``conversation_id``."""
    for key in ID_FIELDS:
        value = record.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def recording_source(record: Record) -> str | None:
    for key in SOURCE_FIELDS:
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def discover_columns(
    records: Iterable[Record], hidden: Iterable[str] = HIDDEN_COLUMNS
) -> list[str]:
    """Collect displayable scalar columns in first-seen order."""
    hidden_set = set(hidden)
    columns: list[str] = []
    seen: set[str] = set()
    for record in records:
        for key, value in record.items():
            if key in seen or key in hidden_set or key.startswith("_"):
                continue
            if isinstance(value, (dict, list)):
                continue
            seen.add(key)
            columns.append(key)
    return columns


def format_cell(value: Any, max_len: int = CELL_MAX_LEN) -> str:
    """Plain-text cell content."""
    if value is None or value == "":
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:g}"
    return truncate_text(" ".join(str(value).split()), max_len)


def render_cell(value: Any, max_len: int = CELL_MAX_LEN) -> str:
    """Cell content as Rich markup safe for Textual tables."""
    text = format_cell(value, max_len)
    if text == "-":
        return f"[{THEME_COLORS['muted']}]-[/]"
    return escape_rich_text(text)


def render_playback_cell(has_source: bool, playing: bool, progress: float) -> str:
    if not has_source:
        return ""
    if not playing:
        return f"[{THEME_COLORS['green']}]{PLAY_ICON}[/]"
    bar = render_progress_bar(progress, 1.0, PROGRESS_BAR_WIDTH)
    return f"[{THEME_COLORS['pink']}]{STOP_ICON}[/] [{THEME_COLORS['accent']}]{bar}[/]"


def render_row(record: Record, columns: Sequence[str]) -> list[str]:
    return [render_cell(record.get(column)) for column in columns]


def format_pagination_line(state: ListWindowState) -> str:
    """Plain pagination summary, e.g. ``Page 2 of 3+ | 11-20 of 30+``."""
    page = state.query.page_index
    pages = state.total_pages
    more = "+" if state.has_more_hint and not state.total_is_exact else ""
    parts = [f"Page {page} of {max(pages, page)}{more}", format_page_range(state)]
    if state.query.sort_column:
        parts.append(f"sorted by {state.query.sort_column} {state.query.sort_direction}")
    if state.query.search_text:
        parts.append(f'search "{state.query.search_text}"')
    if state.mode == MODE_SNAPSHOT and state.truncated:
        parts.append("first records only")
    if state.loading:
        parts.append("loading...")
    return " | ".join(parts)


def render_status_line(state: ListWindowState) -> str:
    """Pagination line as markup, with the error message taking precedence."""
    if state.error:
        first_line = state.error.splitlines()[0]
        return f"[{THEME_COLORS['pink']}]{escape_rich_text(first_line)}[/] [dim](r to retry)[/]"
    return escape_rich_text(format_pagination_line(state))


__all__ = [
    "CELL_MAX_LEN",
    "HIDDEN_COLUMNS",
    "THEME_COLORS",
    "discover_columns",
    "format_cell",
    "format_pagination_line",
    "record_id",
    "recording_source",
    "render_cell",
    "render_playback_cell",
    "render_row",
    "render_status_line",
]

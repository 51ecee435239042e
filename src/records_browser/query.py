"""Query wire params, sorting, slicing, and window formatting utilities."""

from __future__ import annotations

import functools
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from rich.markup import escape as escape_markup

from records_browser.models import (
    DEFAULT_DURATION_COLUMNS,
    ListQuery,
    ListWindowState,
    PageRequest,
    Record,
)

# ============================================================================
# Text Formatting Utilities
# ============================================================================


def truncate_text(text: str, max_len: int, suffix: str = "...") -> str:
    """Truncate text to max_len characters, adding suffix if truncated.

    Args:
        text: The text to truncate.
        max_len: Maximum length before truncation (not including suffix).
        suffix: String to append when truncated.

    Returns:
        Original text if within limit, otherwise truncated with suffix.
    """
    if len(text) <= max_len:
        return text
    return text[:max_len] + suffix


def escape_rich_text(text: str) -> str:
    """Escape text for safe Rich markup rendering."""
    return escape_markup(text) if text else ""


def render_progress_bar(current: float, total: float, width: int = 10) -> str:
    """Render a Unicode progress bar like ████░░░░░░."""
    if total <= 0:
        return "░" * width
    filled = max(0, min(width, round(current / total * width)))
    return "█" * filled + "░" * (width - filled)


def format_total_label(state: ListWindowState) -> str:
    """Render the displayed total, suffixed with ``+`` while more records may exist."""
    if state.total_is_exact or not state.has_more_hint:
        return str(state.displayed_total)
    return f"{state.displayed_total}+"


def format_page_range(state: ListWindowState) -> str:
    """Build the ``start-end of total`` pagination label."""
    return f"{state.start_record}-{state.end_record} of {format_total_label(state)}"


# ============================================================================
# Wire Parameters
# ============================================================================


def build_page_request(query: ListQuery, *, skip: int, limit: int) -> PageRequest:
    """Build the bounded backend request for a query window."""
    return PageRequest(
        skip=max(0, skip),
        limit=limit,
        search=query.search_text,
        filters=query.filters,
        sort=query.server_sort,
    )


def build_list_params(request: PageRequest) -> list[tuple[str, str]]:
    """Serialize a page request as ordered query params.

    Multi-valued filters are repeated ``key=value`` pairs; empty optional
    params are omitted rather than sent blank.
    """
    params: list[tuple[str, str]] = [
        ("skip", str(request.skip)),
        ("limit", str(request.limit)),
    ]
    if request.search:
        params.append(("search", request.search))
    params.extend(request.filters)
    if request.sort:
        params.append(("sort", request.sort))
    return params


# ============================================================================
# Record Sorting
# ============================================================================

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)\s*minutes?")


def parse_duration_minutes(value: Any) -> float:
    """Extract minutes from values like ``"2.5 minutes"``; anything else is 0."""
    if not value:
        return 0.0
    match = _DURATION_RE.search(str(value).lower())
    return float(match.group(1)) if match else 0.0


def _normalize_sort_value(value: Any) -> Any:
    return "" if value is None else value


def _compare(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _compare_plain(a: Any, b: Any) -> int:
    if isinstance(a, bool) and isinstance(b, bool):
        return _compare(a, b)
    return _compare(str(a).lower(), str(b).lower())


def _compare_durations(a: Any, b: Any) -> int:
    return _compare(parse_duration_minutes(a), parse_duration_minutes(b))


def sort_records(
    records: Iterable[Record],
    column: str,
    direction: str = "asc",
    *,
    duration_columns: Sequence[str] = DEFAULT_DURATION_COLUMNS,
) -> list[Record]:
    """Stable-sort records by one column, returning a new list.

    Missing and null values sort as the empty string. Two booleans compare
    ``False < True``. Duration columns compare by parsed minutes. Everything
    else compares case-insensitively as text. Ties keep their input order in
    both directions.
    """
    compare: Callable[[Any, Any], int] = (
        _compare_durations if column in duration_columns else _compare_plain
    )

    def _cmp(left: Record, right: Record) -> int:
        return compare(
            _normalize_sort_value(left.get(column)),
            _normalize_sort_value(right.get(column)),
        )

    return sorted(records, key=functools.cmp_to_key(_cmp), reverse=direction == "desc")


def slice_page(records: Sequence[Record], page_index: int, page_size: int) -> list[Record]:
    """Return the 1-based page ``page_index`` out of ``records``."""
    start = (page_index - 1) * page_size
    return list(records[start : start + page_size])


def last_page_index(total: int, page_size: int) -> int:
    """Return the 1-based index of the last page holding ``total`` records."""
    return max(1, -(-total // page_size))


__all__ = [
    "build_list_params",
    "build_page_request",
    "escape_rich_text",
    "format_page_range",
    "format_total_label",
    "last_page_index",
    "parse_duration_minutes",
    "render_progress_bar",
    "slice_page",
    "sort_records",
    "truncate_text",
]

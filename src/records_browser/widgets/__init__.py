"""Widget classes and rendering helpers for the records screen."""

from records_browser.widgets.chrome import ContextFooter, StatusBar, UnreadBadge
from records_browser.widgets.listing import (
    CELL_MAX_LEN,
    discover_columns,
    format_cell,
    format_pagination_line,
    record_id,
    recording_source,
    render_cell,
    render_playback_cell,
    render_row,
    render_status_line,
)

__all__ = [
    "CELL_MAX_LEN",
    "ContextFooter",
    "StatusBar",
    "UnreadBadge",
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

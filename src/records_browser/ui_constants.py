"""Internal UI constants for the RecordsBrowser app."""

from __future__ import annotations

from textual.binding import Binding, BindingType

APP_CSS = """
#list-header {
    height: 1;
    padding: 0 1;
}

#list-title {
    width: 1fr;
    color: $accent;
    text-style: bold;
}

#search-input {
    width: 100%;
    border: tall $accent;
}

#records-table {
    height: 1fr;
    scrollbar-gutter: stable;
}

#status-bar {
    color: $text-muted;
}

#status-bar.error {
    color: $error;
}
"""

APP_BINDINGS: list[BindingType] = [
    Binding("q", "quit", "Quit", show=False),
    Binding("slash", "focus_search", "Search", show=False),
    Binding("escape", "focus_table", "Table", show=False),
    Binding("n", "next_page", "Next", show=False),
    Binding("p", "prev_page", "Prev", show=False),
    Binding("g", "first_page", "First", show=False),
    Binding("G", "last_page", "Last", show=False),
    Binding("s", "sort_column", "Sort", show=False),
    Binding("c", "clear_sort", "Clear Sort", show=False),
    Binding("r", "refresh", "Refresh", show=False),
    Binding("space", "toggle_play", "Play/Stop", show=False),
    Binding("x", "stop_playback", "Stop", show=False),
    Binding("plus", "page_size(1)", "More Rows", show=False),
    Binding("minus", "page_size(-1)", "Fewer Rows", show=False),
]

FOOTER_HINTS: list[tuple[str, str]] = [
    ("/", "search"),
    ("n/p", "page"),
    ("G", "last"),
    ("s", "sort"),
    ("c", "clear sort"),
    ("space", "play"),
    ("r", "refresh"),
    ("q", "quit"),
]

__all__ = [
    "APP_BINDINGS",
    "APP_CSS",
    "FOOTER_HINTS",
]

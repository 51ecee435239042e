"""Widget chrome: pagination status bar, unread badge, and footer hints."""

from __future__ import annotations

from textual.widgets import Static

from records_browser.models import ListWindowState
from records_browser.query import escape_rich_text
from records_browser.widgets.listing import THEME_COLORS, render_status_line


class StatusBar(Static):
    """Single-line pagination summary or inline fetch error."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    """

    def show_state(self, state: ListWindowState) -> None:
        self.set_class(state.error is not None, "error")
        self.update(render_status_line(state))


class UnreadBadge(Static):
    """Unread counter shown in the header row."""

    DEFAULT_CSS = """
    UnreadBadge {
        width: auto;
        height: 1;
        padding: 0 1;
    }
    """

    def show_count(self, count: int) -> None:
        if count <= 0:
            self.update(f"[{THEME_COLORS['muted']}]no unread[/]")
            return
        self.update(f"[bold {THEME_COLORS['orange']}]{count} unread[/]")


class ContextFooter(Static):
    """Footer showing the active keybindings."""

    DEFAULT_CSS = """
    ContextFooter {
        dock: bottom;
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    def render_bindings(self, bindings: list[tuple[str, str]]) -> None:
        """Update the footer with a list of (key, label) binding hints."""
        accent = THEME_COLORS["accent"]
        muted = THEME_COLORS["muted"]
        parts = [
            f"[bold {accent}]{escape_rich_text(key)}[/] [{muted}]{label}[/]"
            for key, label in bindings
        ]
        self.update("  ".join(parts))


__all__ = ["ContextFooter", "StatusBar", "UnreadBadge"]

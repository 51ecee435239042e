"""Textual screen wiring the windowed list, realtime refresh, badge, and playback together."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Header, Input, Label
from textual.widgets.data_table import CellDoesNotExist

from records_browser.action_messages import build_playback_failure
from records_browser.badges import UnreadCountBadge
from records_browser.cli import main as _cli_main
from records_browser.config import save_config
from records_browser.dedupe import DedupeCache
from records_browser.media import PlayerFactory, subprocess_player_factory
from records_browser.models import (
    PAGE_SIZE_OPTIONS,
    ListQuery,
    ListWindowState,
    Record,
    SessionState,
    UserConfig,
)
from records_browser.playback import PlaybackController, PlaybackStartFailure
from records_browser.query import format_total_label, parse_duration_minutes
from records_browser.realtime import RealtimeRouter
from records_browser.refresh import RECORDS_CHANGED, RefreshCoordinator, SubscriptionToken
from records_browser.scheduling import AsyncioScheduler, Scheduler
from records_browser.services.interfaces import (
    AppServices,
    bind_page_fetcher,
    bind_unread_count_fetcher,
    build_default_app_services,
)
from records_browser.ui_constants import APP_BINDINGS, APP_CSS, FOOTER_HINTS
from records_browser.widgets import (
    ContextFooter,
    StatusBar,
    UnreadBadge,
    discover_columns,
    record_id,
    recording_source,
    render_playback_cell,
    render_row,
)
from records_browser.window import WindowedListController

logger = logging.getLogger(__name__)

PLAY_COLUMN_KEY = "__play__"


class RecordsBrowser(App):
    """A TUI application to browse a paginated record collection."""

    TITLE = "Records Browser"

    CSS = APP_CSS

    BINDINGS = APP_BINDINGS

    def __init__(
        self,
        config: UserConfig | None = None,
        initial_query: ListQuery | None = None,
        restore_session: bool = True,
        services: AppServices | None = None,
        *,
        coordinator: RefreshCoordinator | None = None,
        scheduler: Scheduler | None = None,
        player_factory: PlayerFactory | None = None,
    ) -> None:
        super().__init__()
        self._config = config or UserConfig()
        self._services: AppServices = services or build_default_app_services()
        self._restore_session = restore_session
        self._initial_query = initial_query or self._build_start_query()
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._http_client: httpx.AsyncClient | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()

        self.coordinator = coordinator or RefreshCoordinator()
        self.dedupe = DedupeCache(self._scheduler, self._config.dedupe_horizon_seconds)
        self.router = RealtimeRouter(self.coordinator, self.dedupe, on_alert=self._show_alert)
        self._duration_hints: dict[str, float] = {}
        self.playback = PlaybackController(
            player_factory
            or subprocess_player_factory(self._config.player_command, self._duration_hints.get),
            scheduler=self._scheduler,
            on_error=self._on_playback_error,
        )

        self.controller: WindowedListController | None = None
        self.badge: UnreadCountBadge | None = None
        self._subscription: SubscriptionToken | None = None
        self._columns: list[str] = []
        self._row_records: list[Record] = []
        self._row_keys: dict[str, str] = {}
        self._unobservers: list[Callable[[], None]] = []

    def _build_start_query(self) -> ListQuery:
        if not self._restore_session:
            return ListQuery(page_size=self._config.page_size)
        session = self._config.session
        return ListQuery(
            page_size=session.page_size,
            search_text=session.search,
            sort_column=session.sort_column,
            sort_direction=session.sort_direction,
        )

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="list-header"):
            yield Label(" Records", id="list-title")
            yield UnreadBadge(id="unread-badge")
        yield Input(placeholder=" Search records", id="search-input")
        yield DataTable(id="records-table", cursor_type="cell", zebra_stripes=True)
        yield StatusBar(id="status-bar")
        yield ContextFooter()

    def on_mount(self) -> None:
        """Create the shared HTTP client and engines, then load the first window."""
        self._http_client = httpx.AsyncClient()
        config = self._config
        self.controller = WindowedListController(
            bind_page_fetcher(self._services, config, self._http_client),
            scheduler=self._scheduler,
            initial_query=self._initial_query,
            snapshot_cap=config.snapshot_cap,
            search_debounce_seconds=config.search_debounce_ms / 1000,
            duration_columns=config.duration_columns,
            trust_server_total=config.trust_server_total,
        )
        self.controller.add_listener(self._on_window_state)
        self._subscription = self.coordinator.subscribe(RECORDS_CHANGED, self._on_records_changed)

        self.badge = UnreadCountBadge(
            bind_unread_count_fetcher(self._services, config, self._http_client),
            self.coordinator,
            scheduler=self._scheduler,
            poll_seconds=config.unread_poll_seconds,
        )
        self.badge.add_listener(self._on_unread_count)
        self.badge.start()

        self.sub_title = config.collection
        try:
            self.query_one("#search-input", Input).value = self._initial_query.search_text
            self.query_one(ContextFooter).render_bindings(FOOTER_HINTS)
            self.query_one(UnreadBadge).show_count(0)
            self.query_one("#records-table", DataTable).focus()
        except NoMatches:
            pass

        self._track_task(self.controller.set_query(self._initial_query))
        logger.debug(
            "App mounted: collection=%s, query=%s", config.collection, self._initial_query
        )

    async def on_unmount(self) -> None:
        """Persist the session and release every engine and the HTTP client."""
        self._save_session_state()
        if self._subscription is not None:
            self.coordinator.unsubscribe(self._subscription)
            self._subscription = None
        if self.controller is not None:
            self.controller.close()
        if self.badge is not None:
            self.badge.stop()
        self.playback.stop()
        self.dedupe.clear()
        for unobserve in self._unobservers:
            unobserve()
        self._unobservers.clear()
        for task in list(self._background_tasks):
            task.cancel()
        client = self._http_client
        self._http_client = None
        if client is not None:
            await client.aclose()

    def _track_task(self, coro: Any) -> asyncio.Task[Any]:
        """Create an asyncio task and track it to prevent garbage collection."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(self._on_task_done)
        return task

    @staticmethod
    def _on_task_done(task: asyncio.Task[Any]) -> None:
        """Log unhandled exceptions from background tasks."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled exception in background task: %s", exc, exc_info=exc)

    def _save_session_state(self) -> None:
        if self.controller is None:
            return
        query = self.controller.query
        self._config.session = SessionState(
            search=query.search_text,
            sort_column=query.sort_column,
            sort_direction=query.sort_direction,
            page_size=query.page_size,
        )
        self._config.page_size = query.page_size
        if not save_config(self._config):
            logger.warning("Failed to save session state to config file")

    # ------------------------------------------------------------------
    # Realtime entry point
    # ------------------------------------------------------------------
    def feed_realtime(self, raw: str | bytes | Mapping[str, Any]) -> bool:
        """Hand one push-transport frame to the realtime router."""
        return self.router.feed(raw)

    def _show_alert(self, text: str) -> None:
        title, _, body = text.partition("\n")
        self.notify(body or title, title=title, timeout=5)

    def _on_records_changed(self, payload: Any) -> Any:
        if self.controller is None:
            return None
        logger.debug("Refreshing window after %r", payload)
        return self.controller.refresh()

    def _on_unread_count(self, count: int) -> None:
        try:
            self.query_one(UnreadBadge).show_count(count)
        except NoMatches:
            pass

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _on_window_state(self, state: ListWindowState) -> None:
        try:
            status = self.query_one(StatusBar)
            title = self.query_one("#list-title", Label)
        except NoMatches:
            return
        status.show_state(state)
        title.update(f" Records ({format_total_label(state)})")
        if state.loading:
            return
        self._render_rows(state)

    def _render_rows(self, state: ListWindowState) -> None:
        try:
            table = self.query_one("#records-table", DataTable)
        except NoMatches:
            return
        for unobserve in self._unobservers:
            unobserve()
        self._unobservers.clear()

        columns = discover_columns(state.items) or self._columns
        table.clear(columns=True)
        table.add_column("", key=PLAY_COLUMN_KEY, width=11)
        for column in columns:
            table.add_column(self._column_label(column, state), key=column)
        self._columns = columns

        self._row_records = list(state.items)
        self._row_keys = {}
        for index, record in enumerate(state.items):
            item_id = record_id(record)
            row_key = item_id if item_id and item_id not in self._row_keys else f"row-{index}"
            source = recording_source(record)
            if item_id is not None:
                self._row_keys[item_id] = row_key
            if item_id is not None and source is not None:
                self._remember_duration(record, source)
                self._unobservers.append(
                    self.playback.observe(item_id, self._progress_updater(item_id))
                )
            play_cell = render_playback_cell(
                source is not None,
                item_id is not None and self.playback.is_playing(item_id),
                self.playback.progress_of(item_id) if item_id else 0.0,
            )
            table.add_row(play_cell, *render_row(record, columns), key=row_key)

    @staticmethod
    def _column_label(column: str, state: ListWindowState) -> str:
        if state.query.sort_column != column:
            return column
        arrow = "▲" if state.query.sort_direction == "asc" else "▼"
        return f"{column} {arrow}"

    def _remember_duration(self, record: Record, source: str) -> None:
        for column in self._config.duration_columns:
            minutes = parse_duration_minutes(record.get(column))
            if minutes > 0:
                self._duration_hints[source] = minutes * 60
                return

    def _progress_updater(self, item_id: str) -> Callable[[float], None]:
        def _update(progress: float) -> None:
            row_key = self._row_keys.get(item_id)
            if row_key is None:
                return
            try:
                table = self.query_one("#records-table", DataTable)
                table.update_cell(
                    row_key,
                    PLAY_COLUMN_KEY,
                    render_playback_cell(True, self.playback.is_playing(item_id), progress),
                )
            except (NoMatches, CellDoesNotExist):
                pass

        return _update

    def _current_record(self) -> Record | None:
        try:
            table = self.query_one("#records-table", DataTable)
        except NoMatches:
            return None
        row = table.cursor_coordinate.row
        if 0 <= row < len(self._row_records):
            return self._row_records[row]
        return None

    def _current_column(self) -> str | None:
        try:
            table = self.query_one("#records-table", DataTable)
        except NoMatches:
            return None
        # Column 0 is the playback control.
        index = table.cursor_coordinate.column - 1
        if 0 <= index < len(self._columns):
            return self._columns[index]
        return None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search-input" and self.controller is not None:
            self.controller.search_changed(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search-input" and self.controller is not None:
            self.controller.flush_search()
            self.action_focus_table()

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        column = event.column_key.value
        if column and column != PLAY_COLUMN_KEY and self.controller is not None:
            self._track_task(self.controller.toggle_sort(column))

    def action_focus_search(self) -> None:
        try:
            self.query_one("#search-input", Input).focus()
        except NoMatches:
            pass

    def action_focus_table(self) -> None:
        try:
            self.query_one("#records-table", DataTable).focus()
        except NoMatches:
            pass

    def action_next_page(self) -> None:
        if self.controller is not None:
            self._track_task(self._step_page(self.controller.next_page, "Already at the last page"))

    def action_prev_page(self) -> None:
        if self.controller is not None:
            self._track_task(
                self._step_page(self.controller.prev_page, "Already at the first page")
            )

    def action_last_page(self) -> None:
        if self.controller is not None:
            self._track_task(self._step_page(self.controller.last_page, "Already at the last page"))

    def action_first_page(self) -> None:
        if self.controller is not None and self.controller.query.page_index > 1:
            self._track_task(self.controller.go_to_page(1))

    async def _step_page(self, step: Callable[[], Any], message: str) -> None:
        if not await step():
            self.notify(message, title="Page")

    def action_sort_column(self) -> None:
        column = self._current_column()
        if column is None or self.controller is None:
            self.notify("Move the cursor to a column to sort by it", title="Sort")
            return
        self._track_task(self.controller.toggle_sort(column))

    def action_clear_sort(self) -> None:
        if self.controller is not None and self.controller.query.sort_column is not None:
            self._track_task(self.controller.clear_sort())

    def action_refresh(self) -> None:
        if self.controller is not None:
            self._track_task(self.controller.refresh())

    def action_page_size(self, delta: int) -> None:
        if self.controller is None:
            return
        current = self.controller.query.page_size
        options = list(PAGE_SIZE_OPTIONS)
        index = options.index(current) if current in options else 0
        index = max(0, min(len(options) - 1, index + delta))
        if options[index] != current:
            self._track_task(self.controller.set_page_size(options[index]))

    def action_toggle_play(self) -> None:
        record = self._current_record()
        if record is None:
            return
        item_id = record_id(record)
        source = recording_source(record)
        if item_id is None or source is None:
            self.notify("This record has no recording", title="Playback")
            return
        self._track_task(self._toggle_play(item_id, source))

    async def _toggle_play(self, item_id: str, source: str) -> None:
        try:
            await self.playback.toggle(item_id, source)
        except PlaybackStartFailure as exc:
            self._on_playback_error(exc.item_id, exc.reason)

    def _on_playback_error(self, item_id: str, reason: str) -> None:
        self.notify(
            build_playback_failure(item_id, reason),
            title="Playback",
            severity="error",
            timeout=6,
        )

    def action_stop_playback(self) -> None:
        self.playback.stop()


def main() -> int:
    """Main entry point wrapper for CLI/bootstrap logic."""
    return _cli_main(app_factory=RecordsBrowser)


if __name__ == "__main__":
    sys.exit(main())

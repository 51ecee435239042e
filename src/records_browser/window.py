"""Windowed list controller: paging, client-side sort snapshots, and stale-response guarding."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import replace
from typing import Any

import httpx

from records_browser.action_messages import describe_fetch_failure
from records_browser.estimation import TotalEstimator
from records_browser.models import (
    DEFAULT_DURATION_COLUMNS,
    DEFAULT_SEARCH_DEBOUNCE_MS,
    DEFAULT_SNAPSHOT_CAP,
    MODE_SERVER,
    MODE_SNAPSHOT,
    ListQuery,
    ListWindowState,
    PageRequest,
    PageResponse,
    Record,
)
from records_browser.query import (
    build_page_request,
    last_page_index,
    slice_page,
    sort_records,
)
from records_browser.scheduling import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

PageFetcher = Callable[[PageRequest], Awaitable[PageResponse]]
StateListener = Callable[[ListWindowState], None]


class SearchDebouncer:
    """Coalesce rapid free-text edits into one settled value after a quiet period."""

    def __init__(
        self,
        scheduler: Scheduler,
        delay_seconds: float,
        on_settled: Callable[[str], None],
    ) -> None:
        self._scheduler = scheduler
        self._delay = max(0.0, delay_seconds)
        self._on_settled = on_settled
        self._timer: TimerHandle | None = None
        self._pending_text: str | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def push(self, text: str) -> None:
        """Record the latest text and restart the quiet-period timer."""
        self.cancel()
        self._pending_text = text
        self._timer = self._scheduler.call_later(self._delay, self._fire)

    def flush(self) -> bool:
        """Deliver a pending value immediately. Returns False when nothing was pending."""
        if self._timer is None:
            return False
        self._timer.cancel()
        self._fire()
        return True

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending_text = None

    def _fire(self) -> None:
        text = self._pending_text or ""
        self._timer = None
        self._pending_text = None
        self._on_settled(text)


class WindowedListController:
    """Own one screen's list window and keep it consistent with a paged backend.

    Queries without a sort column are served one server page at a time and
    the total is estimated from page shapes. Queries with a sort column pull
    a bounded snapshot from offset 0, sort it locally, and slice the page.
    Every query gets a new request id and only the latest one is applied.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        *,
        scheduler: Scheduler | None = None,
        initial_query: ListQuery | None = None,
        snapshot_cap: int = DEFAULT_SNAPSHOT_CAP,
        search_debounce_seconds: float = DEFAULT_SEARCH_DEBOUNCE_MS / 1000,
        duration_columns: Sequence[str] = DEFAULT_DURATION_COLUMNS,
        trust_server_total: bool = False,
    ) -> None:
        if snapshot_cap < 1:
            raise ValueError(f"snapshot_cap must be positive, got {snapshot_cap}")
        self._fetch_page = fetch_page
        self._scheduler = scheduler or AsyncioScheduler()
        self._snapshot_cap = snapshot_cap
        self._duration_columns = tuple(duration_columns)
        self._trust_server_total = trust_server_total
        self._estimator = TotalEstimator()
        self._query = initial_query or ListQuery()
        self._state = ListWindowState(query=self._query)
        self._request_serial = 0
        self._snapshot: list[Record] | None = None
        self._snapshot_key: tuple[Any, ...] | None = None
        # Set while a forced refetch has not yet landed; blocks snapshot reuse.
        self._refresh_pending = False
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._debouncer = SearchDebouncer(
            self._scheduler, search_debounce_seconds, self._on_search_settled
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def query(self) -> ListQuery:
        """The most recently submitted query (may still be loading)."""
        return self._query

    def get_view(self) -> ListWindowState:
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def set_query(self, query: ListQuery, *, force: bool = False) -> None:
        """Supersede the current query and load its window.

        Args:
            query: The new query; replaces the old one as a whole.
            force: Refetch even when a held snapshot could be re-sliced.
        """
        self._request_serial += 1
        request_id = self._request_serial
        self._query = query
        if force:
            self._refresh_pending = True

        if (
            query.sort_column is not None
            and not self._refresh_pending
            and self._state.mode == MODE_SNAPSHOT
            and self._snapshot is not None
            and self._snapshot_key == self._snapshot_key_for(query)
        ):
            self._apply_snapshot(query, self._snapshot, truncated=self._state.truncated)
            return

        self._set_state(replace(self._state, loading=True, in_flight_request_id=request_id))
        if query.sort_column is None:
            request = build_page_request(query, skip=query.skip, limit=query.page_size)
        else:
            request = build_page_request(query, skip=0, limit=self._snapshot_cap)

        try:
            response = await self._fetch_page(request)
        except (httpx.HTTPError, OSError, ValueError) as exc:
            if request_id != self._request_serial:
                logger.debug("Ignoring failure of superseded request %d", request_id)
                return
            logger.warning("Record fetch failed for request %d: %s", request_id, exc, exc_info=True)
            self._refresh_pending = False
            self._snapshot = None
            self._set_state(
                replace(
                    self._state,
                    items=(),
                    has_more_hint=False,
                    in_flight_request_id=None,
                    query=query,
                    loading=False,
                    error=describe_fetch_failure(exc),
                )
            )
            return

        # Ignore stale responses from superseded requests.
        if request_id != self._request_serial:
            logger.debug(
                "Discarded stale response for request %d (current %d)",
                request_id,
                self._request_serial,
            )
            return

        self._refresh_pending = False
        if query.sort_column is None:
            self._apply_server_page(query, response)
        else:
            truncated = len(response.items) >= self._snapshot_cap
            if truncated:
                logger.warning(
                    "Sort snapshot hit the %d record cap; ordering covers only those records",
                    self._snapshot_cap,
                )
            self._snapshot = list(response.items[: self._snapshot_cap])
            self._snapshot_key = self._snapshot_key_for(query)
            self._apply_snapshot(query, self._snapshot, truncated=truncated)

    async def refresh(self) -> None:
        """Re-run the current query against the backend."""
        await self.set_query(self._query, force=True)

    def submit(self, query: ListQuery, *, force: bool = False) -> asyncio.Task[None]:
        """Schedule :meth:`set_query` from synchronous code and track the task."""
        task = asyncio.get_running_loop().create_task(self.set_query(query, force=force))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def search_changed(self, text: str) -> None:
        """Feed raw search input; it becomes part of the query after the debounce delay."""
        self._debouncer.push(text)

    def flush_search(self) -> bool:
        return self._debouncer.flush()

    async def go_to_page(self, page_index: int) -> None:
        await self.set_query(self._query.with_page(page_index))

    async def next_page(self) -> bool:
        state = self._state
        page = self._query.page_index
        if not state.has_more_hint and page >= state.total_pages:
            return False
        await self.go_to_page(page + 1)
        return True

    async def prev_page(self) -> bool:
        page = self._query.page_index
        if page <= 1:
            return False
        await self.go_to_page(page - 1)
        return True

    async def last_page(self) -> bool:
        """Jump to the known last page, or step forward while the end is unknown."""
        state = self._state
        if state.mode == MODE_SNAPSHOT or state.total_is_exact:
            last = last_page_index(state.displayed_total, self._query.page_size)
            if self._query.page_index >= last:
                return False
            await self.go_to_page(last)
            return True
        return await self.next_page()

    async def toggle_sort(self, column: str) -> None:
        await self.set_query(self._query.toggle_sort(column))

    async def clear_sort(self) -> None:
        await self.set_query(self._query.clear_sort())

    async def set_filters(self, filters: Mapping[str, str | Sequence[str]] | None) -> None:
        await self.set_query(self._query.with_filters(filters))

    async def set_page_size(self, page_size: int) -> None:
        await self.set_query(self._query.with_page_size(page_size))

    def close(self) -> None:
        """Detach from the backend; responses still in flight are ignored."""
        self._request_serial += 1
        self._refresh_pending = False
        self._debouncer.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _snapshot_key_for(query: ListQuery) -> tuple[Any, ...]:
        return (query.search_text, query.filters, query.server_sort)

    def _on_search_settled(self, text: str) -> None:
        cleaned = text.strip()
        if cleaned == self._query.search_text:
            return
        self.submit(self._query.with_search(cleaned))

    def _apply_server_page(self, query: ListQuery, response: PageResponse) -> None:
        self._snapshot = None
        self._snapshot_key = None
        items = response.items[: query.page_size]
        self._estimator.ensure_shape(query.shape)
        estimate = self._estimator.observe(
            page_index=query.page_index,
            page_size=query.page_size,
            item_count=len(items),
            server_total=response.total,
            trust_server_total=self._trust_server_total,
        )
        visible_end = query.skip + len(items)
        full_page = len(items) >= query.page_size
        if estimate.exact:
            # Past a grown exact total only the server can say whether more exist.
            has_more = visible_end < estimate.value or (full_page and bool(response.has_more))
        elif response.has_more is not None:
            has_more = response.has_more
        else:
            has_more = full_page

        self._set_state(
            ListWindowState(
                mode=MODE_SERVER,
                items=tuple(items),
                displayed_total=estimate.value,
                total_is_exact=estimate.exact,
                has_more_hint=has_more,
                in_flight_request_id=None,
                query=query,
            )
        )

        # A page past the end (records deleted since the last load) snaps back.
        if not items and query.page_index > 1 and estimate.exact and estimate.value > 0:
            last = last_page_index(estimate.value, query.page_size)
            if last < query.page_index:
                self.submit(query.with_page(last))

    def _apply_snapshot(self, query: ListQuery, snapshot: list[Record], *, truncated: bool) -> None:
        ordered = sort_records(
            snapshot,
            query.sort_column or "",
            query.sort_direction,
            duration_columns=self._duration_columns,
        )
        last = last_page_index(len(ordered), query.page_size)
        if query.page_index > last:
            query = query.with_page(last)
            self._query = query
        self._set_state(
            ListWindowState(
                mode=MODE_SNAPSHOT,
                items=tuple(slice_page(ordered, query.page_index, query.page_size)),
                displayed_total=len(ordered),
                total_is_exact=True,
                has_more_hint=False,
                in_flight_request_id=None,
                query=query,
                truncated=truncated,
            )
        )

    def _set_state(self, state: ListWindowState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.warning("List state listener failed", exc_info=True)


__all__ = [
    "PageFetcher",
    "SearchDebouncer",
    "StateListener",
    "WindowedListController",
]

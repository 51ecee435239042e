"""Unread/pending counter kept fresh by refresh topics and a fixed poll."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from records_browser.refresh import UNREAD_COUNT_CHANGED, RefreshCoordinator, SubscriptionToken
from records_browser.scheduling import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

CountFetcher = Callable[[], Awaitable[int]]
CountListener = Callable[[int], None]


class UnreadCountBadge:
    """Track an unread counter for one collection.

    A publish on ``unread-count-changed`` either carries an explicit
    ``{"count": n}`` or announces a created record, which bumps the count
    immediately and then refetches the real value. Fetch failures keep the
    last known count.
    """

    def __init__(
        self,
        fetch_count: CountFetcher,
        coordinator: RefreshCoordinator,
        *,
        scheduler: Scheduler | None = None,
        poll_seconds: float = 30.0,
        topic: str = UNREAD_COUNT_CHANGED,
    ) -> None:
        self._fetch_count = fetch_count
        self._coordinator = coordinator
        self._scheduler = scheduler or AsyncioScheduler()
        self._poll_seconds = poll_seconds
        self._topic = topic
        self._count = 0
        self._fetch_serial = 0
        self._token: SubscriptionToken | None = None
        self._poll_timer: TimerHandle | None = None
        self._listeners: list[CountListener] = []
        self._tasks: set[asyncio.Task[int]] = set()

    @property
    def count(self) -> int:
        return self._count

    @property
    def started(self) -> bool:
        return self._token is not None

    def add_listener(self, listener: CountListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Subscribe to the topic, schedule polling, and kick off the first fetch."""
        if self._token is not None:
            return
        self._token = self._coordinator.subscribe(self._topic, self._on_topic)
        self._schedule_poll()
        self._spawn_refresh()

    def stop(self) -> None:
        if self._token is not None:
            self._coordinator.unsubscribe(self._token)
            self._token = None
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
        self._fetch_serial += 1
        for task in list(self._tasks):
            task.cancel()

    async def refresh(self) -> int:
        """Fetch the counter now. Returns the count in effect afterwards."""
        self._fetch_serial += 1
        serial = self._fetch_serial
        try:
            value = await self._fetch_count()
        except (httpx.HTTPError, OSError, ValueError):
            logger.warning("Unread count fetch failed; keeping %d", self._count, exc_info=True)
            return self._count
        if serial != self._fetch_serial:
            logger.debug("Discarded stale unread count %d", value)
            return self._count
        self._set_count(value)
        return self._count

    def _on_topic(self, payload: Any) -> None:
        if isinstance(payload, Mapping) and isinstance(payload.get("count"), int):
            self._fetch_serial += 1
            self._set_count(payload["count"])
            return
        # Optimistic bump for a created record; the refetch corrects it.
        self._set_count(self._count + 1)
        self._spawn_refresh()

    def _spawn_refresh(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; unread count refresh skipped")
            return
        task = loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_poll(self) -> None:
        if self._poll_seconds <= 0:
            return
        self._poll_timer = self._scheduler.call_later(self._poll_seconds, self._on_poll)

    def _on_poll(self) -> None:
        self._poll_timer = None
        if self._token is None:
            return
        self._spawn_refresh()
        self._schedule_poll()

    def _set_count(self, value: int) -> None:
        value = max(0, value)
        if value == self._count:
            return
        self._count = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.warning("Unread count listener failed", exc_info=True)


__all__ = ["CountFetcher", "CountListener", "UnreadCountBadge"]

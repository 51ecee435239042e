"""Named-topic refresh bus connecting realtime events to independently mounted screens."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

RECORDS_CHANGED = "records-changed"
UNREAD_COUNT_CHANGED = "unread-count-changed"
ACTIVE_CALLS_CHANGED = "active-calls-changed"

KNOWN_TOPICS = frozenset({RECORDS_CHANGED, UNREAD_COUNT_CHANGED, ACTIVE_CALLS_CHANGED})

RefreshCallback = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class SubscriptionToken:
    """Opaque handle returned by :meth:`RefreshCoordinator.subscribe`."""

    topic: str
    serial: int


class RefreshCoordinator:
    """Synchronous fan-out of topic publishes to subscribed re-fetch callbacks.

    Callbacks run in subscription order. A callback that raises is logged and
    skipped; the rest still run. A callback that returns an awaitable has it
    scheduled as a tracked task on the running loop.
    """

    def __init__(self) -> None:
        self._serials = itertools.count(1)
        self._topics: dict[str, dict[int, RefreshCallback]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, topic: str, callback: RefreshCallback) -> SubscriptionToken:
        token = SubscriptionToken(topic=topic, serial=next(self._serials))
        self._topics.setdefault(topic, {})[token.serial] = callback
        return token

    def unsubscribe(self, token: SubscriptionToken) -> None:
        """Remove a subscription. Unknown or already-removed tokens are ignored."""
        subscribers = self._topics.get(token.topic)
        if subscribers is None:
            return
        subscribers.pop(token.serial, None)
        if not subscribers:
            del self._topics[token.topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, {}))

    def publish(self, topic: str, payload: Any = None) -> int:
        """Invoke every live subscriber of ``topic`` once. Returns the number invoked."""
        subscribers = self._topics.get(topic)
        if not subscribers:
            logger.debug("Publish to %s reached no subscribers", topic)
            return 0
        delivered = 0
        for serial, callback in list(subscribers.items()):
            # A callback earlier in this dispatch may have unsubscribed this one.
            if serial not in subscribers:
                continue
            delivered += 1
            try:
                result = callback(payload)
            except Exception:
                logger.warning("Subscriber %d on %s failed", serial, topic, exc_info=True)
                continue
            if inspect.isawaitable(result):
                self._track(result, topic, serial)
        return delivered

    def _track(self, awaitable: Any, topic: str, serial: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Async subscriber %d on %s returned an awaitable outside an event loop",
                serial,
                topic,
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.warning("Async subscriber %d on %s failed", serial, topic, exc_info=exc)

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for every async subscriber scheduled so far."""
        while self._tasks:
            pending = list(self._tasks)
            await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.difference_update(pending)

    def clear(self) -> None:
        """Drop all subscriptions and cancel outstanding async subscriber tasks."""
        self._topics.clear()
        for task in list(self._tasks):
            task.cancel()


__all__ = [
    "ACTIVE_CALLS_CHANGED",
    "KNOWN_TOPICS",
    "RECORDS_CHANGED",
    "UNREAD_COUNT_CHANGED",
    "RefreshCallback",
    "RefreshCoordinator",
    "SubscriptionToken",
]

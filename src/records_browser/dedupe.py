"""Time-bounded duplicate suppression for pushed notifications."""

from __future__ import annotations

import logging

from records_browser.models import DEFAULT_DEDUPE_HORIZON_SECONDS, DedupeEntry
from records_browser.scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class DedupeCache:
    """A self-pruning "seen" set keyed by notification identity.

    Each key gets exactly one expiry timer, scheduled when it is first seen.
    Seeing the key again before expiry does not extend its window.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        horizon_seconds: float = DEFAULT_DEDUPE_HORIZON_SECONDS,
    ) -> None:
        if horizon_seconds <= 0:
            raise ValueError(f"horizon_seconds must be positive, got {horizon_seconds}")
        self._scheduler = scheduler
        self._horizon = horizon_seconds
        self._entries: dict[str, DedupeEntry] = {}
        self._timers: dict[str, TimerHandle] = {}

    @property
    def horizon_seconds(self) -> float:
        return self._horizon

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def should_suppress(self, key: str) -> bool:
        """Return True if ``key`` was seen within the horizon, else record it and return False."""
        if key in self._entries:
            logger.debug("Suppressing duplicate notification %s", key)
            return True
        self._entries[key] = DedupeEntry(key=key, seen_at=self._scheduler.now())
        self._timers[key] = self._scheduler.call_later(self._horizon, lambda: self._evict(key))
        return False

    def _evict(self, key: str) -> None:
        self._entries.pop(key, None)
        self._timers.pop(key, None)

    def clear(self) -> None:
        """Drop every entry and cancel the pending expiry timers."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._entries.clear()


__all__ = ["DedupeCache"]

"""Single-owner playback: at most one recording plays at a time across every list."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from records_browser.media import MediaPlayer, PlayerFactory
from records_browser.models import PlaybackSession
from records_browser.scheduling import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

FRAME_INTERVAL_SECONDS = 1 / 30

ProgressObserver = Callable[[float], None]
PlaybackErrorSink = Callable[[str, str], None]


class PlayerState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


class PlaybackStartFailure(RuntimeError):
    """A source could not start; the controller is already back to idle."""

    def __init__(self, item_id: str, reason: str) -> None:
        super().__init__(f"Playback of {item_id} failed to start: {reason}")
        self.item_id = item_id
        self.reason = reason


class PlaybackController:
    """Own the one playback session and publish per-item progress.

    Starting a different item always stops the current one first. Rows never
    touch the player directly; they call :meth:`play`/:meth:`stop` and read
    :meth:`is_playing`/:meth:`progress_of` or register an observer.
    """

    def __init__(
        self,
        player_factory: PlayerFactory,
        *,
        scheduler: Scheduler | None = None,
        frame_interval: float = FRAME_INTERVAL_SECONDS,
        on_error: PlaybackErrorSink | None = None,
    ) -> None:
        if frame_interval <= 0:
            raise ValueError(f"frame_interval must be positive, got {frame_interval}")
        self._player_factory = player_factory
        self._scheduler = scheduler or AsyncioScheduler()
        self._frame_interval = frame_interval
        self._on_error = on_error
        self._session = PlaybackSession()
        self._player: MediaPlayer | None = None
        self._frame_timer: TimerHandle | None = None
        self._start_serial = 0
        self._starting_id: str | None = None
        self._observers: dict[str, list[ProgressObserver]] = {}

    @property
    def state(self) -> PlayerState:
        return PlayerState.PLAYING if self._session.owner_id is not None else PlayerState.IDLE

    @property
    def session(self) -> PlaybackSession:
        return self._session

    @property
    def starting_id(self) -> str | None:
        """Item whose start call is still awaiting the player, if any."""
        return self._starting_id

    def is_playing(self, item_id: str) -> bool:
        return self._session.owner_id == item_id

    def progress_of(self, item_id: str) -> float:
        if self._session.owner_id != item_id:
            return 0.0
        return self._session.progress

    def observe(self, item_id: str, observer: ProgressObserver) -> Callable[[], None]:
        """Register a progress observer for one item. Returns the unsubscribe callable."""
        self._observers.setdefault(item_id, []).append(observer)

        def _unobserve() -> None:
            observers = self._observers.get(item_id)
            if observers and observer in observers:
                observers.remove(observer)
                if not observers:
                    del self._observers[item_id]

        return _unobserve

    async def play(self, item_id: str, source_ref: str) -> None:
        """Start ``source_ref`` as ``item_id``, stopping whatever plays now.

        Raises:
            PlaybackStartFailure: The source failed to start. State is idle.
        """
        if self._session.owner_id == item_id or self._starting_id == item_id:
            return
        self.stop()
        self._start_serial += 1
        serial = self._start_serial
        self._starting_id = item_id

        player = self._player_factory(source_ref)
        player.set_callbacks(
            on_ended=lambda: self._on_player_finished(player, None),
            on_error=lambda reason: self._on_player_finished(player, reason),
        )
        try:
            await player.play()
        except asyncio.CancelledError:
            if serial == self._start_serial:
                self._starting_id = None
            player.pause()
            raise
        except Exception as exc:
            if serial != self._start_serial:
                logger.debug("Superseded start of %s failed: %s", item_id, exc)
                return
            self._starting_id = None
            logger.warning("Playback of %s failed to start", item_id, exc_info=True)
            raise PlaybackStartFailure(item_id, str(exc) or type(exc).__name__) from exc

        if serial != self._start_serial:
            # Stopped or superseded while the source was starting.
            logger.debug("Releasing superseded player for %s", item_id)
            player.pause()
            return

        self._starting_id = None
        self._player = player
        self._session = PlaybackSession(owner_id=item_id, progress=0.0)
        self._notify(item_id, 0.0)
        self._schedule_frame()

    async def toggle(self, item_id: str, source_ref: str) -> bool:
        """Stop ``item_id`` if it owns playback, otherwise play it. Returns the new playing flag."""
        if self.is_playing(item_id) or self._starting_id == item_id:
            self.stop()
            return False
        await self.play(item_id, source_ref)
        return self.is_playing(item_id)

    def stop(self) -> None:
        """Halt playback immediately and release the player."""
        self._start_serial += 1
        self._starting_id = None
        if self._session.owner_id is not None:
            self._terminate()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _terminate(self) -> None:
        owner_id = self._session.owner_id
        player = self._player
        if self._frame_timer is not None:
            self._frame_timer.cancel()
            self._frame_timer = None
        self._player = None
        self._session = PlaybackSession()
        if player is not None:
            player.pause()
            player.position = 0.0
        if owner_id is not None:
            self._notify(owner_id, 0.0)

    def _on_player_finished(self, player: MediaPlayer, reason: str | None) -> None:
        if player is not self._player:
            return
        owner_id = self._session.owner_id
        if reason is None:
            logger.debug("Playback of %s ended", owner_id)
            self._terminate()
            return
        logger.warning("Playback of %s stopped on error: %s", owner_id, reason)
        self._terminate()
        if self._on_error is not None and owner_id is not None:
            try:
                self._on_error(owner_id, reason)
            except Exception:
                logger.warning("Playback error sink failed", exc_info=True)

    def _schedule_frame(self) -> None:
        self._frame_timer = self._scheduler.call_later(self._frame_interval, self._on_frame)

    def _on_frame(self) -> None:
        self._frame_timer = None
        owner_id = self._session.owner_id
        player = self._player
        if owner_id is None or player is None:
            return
        duration = player.duration
        if duration and duration > 0:
            progress = min(1.0, max(0.0, player.position / duration))
        else:
            progress = 0.0
        self._session = PlaybackSession(owner_id=owner_id, progress=progress)
        self._notify(owner_id, progress)
        self._schedule_frame()

    def _notify(self, item_id: str, progress: float) -> None:
        for observer in list(self._observers.get(item_id, ())):
            try:
                observer(progress)
            except Exception:
                logger.warning("Progress observer for %s failed", item_id, exc_info=True)


__all__ = [
    "FRAME_INTERVAL_SECONDS",
    "PlaybackController",
    "PlaybackErrorSink",
    "PlaybackStartFailure",
    "PlayerState",
    "ProgressObserver",
]

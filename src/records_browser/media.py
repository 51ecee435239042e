"""Media player abstraction: a Protocol plus an external-command subprocess player."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from collections.abc import Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

EndedCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]


@runtime_checkable
class MediaPlayer(Protocol):
    """The playable primitive a :class:`PlaybackController` drives.

    ``play`` raises when the source cannot start. After a successful start
    the player reports completion through the ended/error callbacks.
    """

    position: float

    @property
    def duration(self) -> float | None: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...

    def set_callbacks(self, *, on_ended: EndedCallback, on_error: ErrorCallback) -> None: ...


PlayerFactory = Callable[[str], MediaPlayer]

# An exit inside this window counts as a failed start rather than a finished clip.
STARTUP_GRACE_SECONDS = 0.5


def build_player_args(command_template: str, source: str) -> list[str]:
    """Build the subprocess argv for a configured player command.

    ``{url}``, ``{path}`` and ``{source}`` placeholders are substituted; without
    one, the source is appended as the last argument.
    """
    args = shlex.split(command_template, posix=os.name != "nt")
    if os.name == "nt":
        # Windows split keeps wrapping quotes when posix=False.
        args = [
            arg[1:-1] if len(arg) >= 2 and arg.startswith('"') and arg.endswith('"') else arg
            for arg in args
        ]
    if not args:
        raise ValueError("Player command is empty")
    placeholders = ("{url}", "{path}", "{source}")
    if any(token in command_template for token in placeholders):
        substituted = []
        for arg in args:
            for token in placeholders:
                arg = arg.replace(token, source)
            substituted.append(arg)
        return substituted
    return [*args, source]


class SubprocessPlayer:
    """Play a source by running an external audio command (ffplay, mpv, afplay...).

    Position is wall time since start on the event loop clock. The process
    cannot seek, so assigning ``position`` only rebases the reported value.
    """

    def __init__(
        self,
        command_template: str,
        source: str,
        *,
        duration: float | None = None,
        startup_grace: float = STARTUP_GRACE_SECONDS,
    ) -> None:
        self._command_template = command_template
        self._source = source
        self._duration = duration if duration and duration > 0 else None
        self._startup_grace = max(0.0, startup_grace)
        self._proc: asyncio.subprocess.Process | None = None
        self._monitor: asyncio.Task[None] | None = None
        self._started_at: float | None = None
        self._offset = 0.0
        self._stopping = False
        self._on_ended: EndedCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def source(self) -> str:
        return self._source

    @property
    def duration(self) -> float | None:
        return self._duration

    @property
    def position(self) -> float:
        if self._started_at is None:
            return self._offset
        elapsed = asyncio.get_running_loop().time() - self._started_at + self._offset
        if self._duration is not None:
            return min(elapsed, self._duration)
        return elapsed

    @position.setter
    def position(self, value: float) -> None:
        self._offset = max(0.0, value)
        if self._started_at is not None:
            self._started_at = asyncio.get_running_loop().time()

    def set_callbacks(self, *, on_ended: EndedCallback, on_error: ErrorCallback) -> None:
        self._on_ended = on_ended
        self._on_error = on_error

    async def play(self) -> None:
        """Spawn the player process and wait out the startup grace period.

        Raises:
            ValueError: The player command is empty.
            OSError: The command could not be spawned, or it exited non-zero
                before the grace period ran out (bad source, unreadable codec).
        """
        argv = build_player_args(self._command_template, self._source)
        self._stopping = False
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        self._proc = proc
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        exited = loop.create_task(proc.communicate())
        try:
            if self._startup_grace > 0:
                await asyncio.wait({exited}, timeout=self._startup_grace)
        except asyncio.CancelledError:
            self.pause()
            raise
        if exited.done() and proc.returncode != 0:
            _stdout, stderr = exited.result()
            self._proc = None
            self._started_at = None
            raise OSError(_exit_reason(proc.returncode, stderr))
        self._monitor = loop.create_task(self._watch(proc, exited))

    async def _watch(
        self,
        proc: asyncio.subprocess.Process,
        exited: asyncio.Task[tuple[bytes, bytes]],
    ) -> None:
        _stdout, stderr = await exited
        if self._stopping or proc is not self._proc:
            return
        self._started_at = None
        if proc.returncode == 0:
            if self._on_ended is not None:
                self._on_ended()
            return
        if self._on_error is not None:
            self._on_error(_exit_reason(proc.returncode, stderr))

    def pause(self) -> None:
        """Halt playback and release the process."""
        self._stopping = True
        proc = self._proc
        if proc is not None and proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
        if self._started_at is not None:
            self._offset = self.position
        self._started_at = None


def _exit_reason(returncode: int | None, stderr: bytes | None) -> str:
    err_msg = (stderr or b"").decode("utf-8", errors="replace").strip()
    reason = f"Exit {returncode}"
    if err_msg:
        reason = f"{reason}: {err_msg[:200]}"
    return reason


def subprocess_player_factory(
    command_template: str,
    duration_for: Callable[[str], float | None] | None = None,
    *,
    startup_grace: float = STARTUP_GRACE_SECONDS,
) -> PlayerFactory:
    """Build a :data:`PlayerFactory` producing :class:`SubprocessPlayer` instances."""

    def _factory(source: str) -> MediaPlayer:
        duration = duration_for(source) if duration_for is not None else None
        return SubprocessPlayer(
            command_template, source, duration=duration, startup_grace=startup_grace
        )

    return _factory


__all__ = [
    "EndedCallback",
    "ErrorCallback",
    "MediaPlayer",
    "PlayerFactory",
    "STARTUP_GRACE_SECONDS",
    "SubprocessPlayer",
    "build_player_args",
    "subprocess_player_factory",
]

"""UI-facing copy builders for errors, alerts, and notifications."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx


def _ensure_sentence(text: str) -> str:
    """Return text with terminal sentence punctuation."""
    cleaned = text.strip()
    if not cleaned:
        return ""
    if cleaned.endswith((".", "!", "?")):
        return cleaned
    return f"{cleaned}."


def build_next_step_hint(next_step: str) -> str:
    """Build a canonical next-step guidance line."""
    return f"Next step: {_ensure_sentence(next_step)}"


def build_actionable_error(
    action: str,
    *,
    next_step: str,
    why: str | None = None,
) -> str:
    """Build a 2-3 line actionable error message."""
    lines = [f"Could not {action.strip()}."]
    if why:
        lines.append(f"Why: {_ensure_sentence(why)}")
    lines.append(build_next_step_hint(next_step))
    return "\n".join(lines)


def describe_fetch_failure(exc: BaseException) -> str:
    """Map a list fetch exception to an actionable, retryable error message."""
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        if status_code in (401, 403):
            return build_actionable_error(
                "load records",
                why=f"the server refused the credentials (HTTP {status_code})",
                next_step="check the API token and press r to retry",
            )
        if status_code == 429:
            return build_actionable_error(
                "load records",
                why="the records API rate limit was reached (HTTP 429)",
                next_step="wait a few seconds and press r to retry",
            )
        if status_code >= 500:
            return build_actionable_error(
                "load records",
                why=f"the records API is unavailable right now (HTTP {status_code})",
                next_step="retry in a minute with r",
            )
        return build_actionable_error(
            "load records",
            why=f"the records API rejected the request (HTTP {status_code})",
            next_step="adjust the search or filters and press r to retry",
        )
    if isinstance(exc, ValueError):
        return build_actionable_error(
            "load records",
            why="the server response was not in the expected format",
            next_step="check the collection and items key settings, then press r",
        )
    return build_actionable_error(
        "load records",
        why="a network or I/O error occurred",
        next_step="check connectivity and press r to retry",
    )


def build_playback_failure(item_id: str, reason: str) -> str:
    """Build the transient alert shown when a recording cannot start."""
    return build_actionable_error(
        f"play recording {item_id}",
        why=reason or "the audio source failed to start",
        next_step="check the player command or try again",
    )


_CREATED_TITLES = {
    "call": "New Call Received",
    "complaint": "New Complaint",
    "appointment": "New Appointment",
    "order": "New Order",
}


def build_new_record_alert(kind: str, data: Mapping[str, Any]) -> str:
    """Build the alert text for a newly created record pushed by the server."""
    lines = [_CREATED_TITLES.get(kind, f"New {kind.replace('_', ' ')}")]
    name = str(data.get("caller_name") or "").strip()
    number = str(data.get("caller_number") or "").strip()
    if name and number:
        lines.append(f"From: {name} ({number})")
    elif name or number:
        lines.append(f"From: {name or number}")
    location = str(data.get("store_location") or "").strip()
    if location:
        lines.append(f"Location: {location}")
    return "\n".join(lines)


__all__ = [
    "build_actionable_error",
    "build_new_record_alert",
    "build_next_step_hint",
    "build_playback_failure",
    "describe_fetch_failure",
]

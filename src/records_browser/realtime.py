"""Inbound realtime messages: decoding, event-to-topic routing, and new-record alerts."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from records_browser.action_messages import build_new_record_alert
from records_browser.dedupe import DedupeCache
from records_browser.refresh import (
    ACTIVE_CALLS_CHANGED,
    KNOWN_TOPICS,
    RECORDS_CHANGED,
    UNREAD_COUNT_CHANGED,
    RefreshCoordinator,
)

logger = logging.getLogger(__name__)

AlertSink = Callable[[str], None]

# Server event name -> topics whose subscribers must refetch.
EVENT_TOPICS: dict[str, tuple[str, ...]] = {
    "call_log_created": (RECORDS_CHANGED, UNREAD_COUNT_CHANGED),
    "complaint_created": (RECORDS_CHANGED,),
    "complaint_updated": (RECORDS_CHANGED,),
    "appointment_created": (RECORDS_CHANGED,),
    "appointment_updated": (RECORDS_CHANGED,),
    "order_created": (RECORDS_CHANGED,),
    "order_updated": (RECORDS_CHANGED,),
    "active_calls_updated": (ACTIVE_CALLS_CHANGED,),
}

# Creation events that surface an alert, keyed to the record kind used in the dedupe key.
CREATION_EVENTS: dict[str, str] = {
    "call_log_created": "call",
    "complaint_created": "complaint",
    "appointment_created": "appointment",
    "order_created": "order",
}

CONTROL_EVENTS = frozenset({"connected", "heartbeat", "pong"})


@dataclass(frozen=True, slots=True)
class RealtimeMessage:
    topic: str
    payload: Any = None
    timestamp: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


def parse_realtime_message(raw: str | bytes | Mapping[str, Any]) -> RealtimeMessage | None:
    """Decode one transport frame into a :class:`RealtimeMessage`.

    Accepts JSON text or an already-decoded mapping with ``topic``/``event``
    and ``payload``/``data`` keys. Returns None for frames that cannot be read.
    """
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Undecodable realtime message: %.200r", raw)
            return None
    else:
        decoded = raw
    if not isinstance(decoded, Mapping):
        logger.warning("Realtime message is not an object: %.200r", decoded)
        return None
    topic = decoded.get("topic") or decoded.get("event")
    if not isinstance(topic, str) or not topic:
        logger.warning("Realtime message without topic: %.200r", decoded)
        return None
    payload = decoded["payload"] if "payload" in decoded else decoded.get("data")
    timestamp = decoded.get("timestamp")
    extra = {
        k: v
        for k, v in decoded.items()
        if k not in ("topic", "event", "payload", "data", "timestamp")
    }
    return RealtimeMessage(
        topic=topic,
        payload=payload,
        timestamp=timestamp if isinstance(timestamp, str) else None,
        extra=extra,
    )


def notification_key(kind: str, data: Any) -> str | None:
    """Identity of a created record for duplicate suppression, or None when unidentifiable."""
    if not isinstance(data, Mapping):
        return None
    identity = data.get("conversation_id") or data.get("id")
    if identity in (None, ""):
        return None
    return f"{kind}_{identity}"


class RealtimeRouter:
    """Translate server events into refresh publishes and deduplicated alerts."""

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        dedupe: DedupeCache,
        on_alert: AlertSink | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._dedupe = dedupe
        self._on_alert = on_alert

    def feed(self, raw: str | bytes | Mapping[str, Any]) -> bool:
        """Decode and handle one transport frame. Returns True when topics were published."""
        message = parse_realtime_message(raw)
        if message is None:
            return False
        return self.handle(message)

    def handle(self, message: RealtimeMessage) -> bool:
        event = message.topic
        if event in CONTROL_EVENTS:
            return False
        if event in KNOWN_TOPICS:
            # Frames already named after a refresh topic carry their own payload.
            self._coordinator.publish(event, message.payload)
            return True
        topics = EVENT_TOPICS.get(event)
        if topics is None:
            logger.debug("Ignoring unknown realtime topic %r", event)
            return False

        kind = CREATION_EVENTS.get(event)
        if kind is not None:
            key = notification_key(kind, message.payload)
            if key is not None and self._dedupe.should_suppress(key):
                # Redelivery of an event already surfaced and already refreshed for.
                return False
            if self._on_alert is not None:
                data = message.payload if isinstance(message.payload, Mapping) else {}
                self._on_alert(build_new_record_alert(kind, data))

        detail = {"reason": event, "data": message.payload}
        for topic in topics:
            self._coordinator.publish(topic, detail)
        return True


__all__ = [
    "CONTROL_EVENTS",
    "CREATION_EVENTS",
    "EVENT_TOPICS",
    "RealtimeMessage",
    "RealtimeRouter",
    "notification_key",
    "parse_realtime_message",
]

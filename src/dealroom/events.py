"""In-process publish/subscribe for negotiation events.

The aggregate records what happened; the service publishes those records here
after they have been persisted.  Subscribers (the WebSocket room hub, metrics,
tests) register plain callables.  A failing subscriber is logged and skipped so
one broken listener cannot undo a committed write.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog

logger = structlog.get_logger()


class EventKind(StrEnum):
    """Events emitted after a successful mutation of a negotiation."""

    NEGOTIATION_CREATED = "negotiation_created"
    OFFER_SUBMITTED = "offer_submitted"
    OFFER_RESPONDED = "offer_responded"
    OFFER_WITHDRAWN = "offer_withdrawn"
    MESSAGE_APPENDED = "message_appended"
    STATUS_CHANGED = "status_changed"


@dataclass(frozen=True)
class NegotiationEvent:
    """Something that happened to one negotiation.

    Attributes:
        kind: What happened.
        negotiation_id: The negotiation it happened to.
        actor_id: Who caused it.
        timestamp: When the aggregate recorded it.
        payload: JSON-safe details (the appended offer or message, etc.).
        property_id: The property under negotiation.
        status: Negotiation status right after the change.
    """

    kind: EventKind
    negotiation_id: str
    actor_id: str
    timestamp: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    property_id: str | None = None
    status: str | None = None

    @property
    def room(self) -> str:
        """Name of the pub/sub room this event belongs to."""
        return f"negotiation-{self.negotiation_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.kind.value,
            "negotiation_id": self.negotiation_id,
            "actor_id": self.actor_id,
            "property_id": self.property_id,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


Subscriber = Callable[[NegotiationEvent], None]


class EventBus:
    """Synchronous fan-out of :class:`NegotiationEvent` to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* and return a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: NegotiationEvent) -> None:
        """Deliver *event* to every subscriber in registration order."""
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "event_subscriber_failed",
                    event_kind=event.kind.value,
                    negotiation_id=event.negotiation_id,
                )

    def publish_all(self, events: list[NegotiationEvent]) -> None:
        for event in events:
            self.publish(event)

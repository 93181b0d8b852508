"""Connect the audit trail to the negotiation event bus.

:func:`wire_audit_to_event_bus` subscribes a handler that turns each
:class:`NegotiationEvent` into the matching :class:`AuditLogger` call.  The
service modules never import the audit package; they only publish events.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from dealroom.audit.logger import AuditLogger
from dealroom.events import EventBus, EventKind, NegotiationEvent

logger = structlog.get_logger()


def _offer_fields(offer: dict[str, Any] | None) -> tuple[str, str]:
    if not offer:
        return "", ""
    return str(offer.get("id", "")), str(offer.get("amount", ""))


def create_audit_handler(audit_logger: AuditLogger) -> Callable[[NegotiationEvent], None]:
    """Return an event-bus subscriber that records events in the audit trail.

    Args:
        audit_logger: The audit logger instance.

    Returns:
        A callable suitable for :meth:`EventBus.subscribe`.
    """

    def handle(event: NegotiationEvent) -> None:
        payload = event.payload
        status = event.status or ""

        if event.kind == EventKind.NEGOTIATION_CREATED:
            audit_logger.log_negotiation_created(
                negotiation_id=event.negotiation_id,
                property_id=event.property_id or str(payload.get("property_id", "")),
                buyer_id=event.actor_id,
                participants=list(payload.get("participants", [])),
            )
        elif event.kind == EventKind.OFFER_SUBMITTED:
            offer = payload.get("offer") or {}
            offer_id, amount = _offer_fields(offer)
            audit_logger.log_offer_submitted(
                negotiation_id=event.negotiation_id,
                property_id=event.property_id,
                actor_id=event.actor_id,
                offer_id=offer_id,
                amount=amount,
                negotiation_status=status,
                expires_at=offer.get("expires_at"),
            )
        elif event.kind == EventKind.OFFER_RESPONDED:
            offer_id, amount = _offer_fields(payload.get("offer"))
            counter = payload.get("counter_offer")
            counter_id, counter_amount = _offer_fields(counter)
            audit_logger.log_offer_response(
                negotiation_id=event.negotiation_id,
                property_id=event.property_id,
                actor_id=event.actor_id,
                offer_id=offer_id,
                action=str(payload.get("action", "")),
                amount=amount,
                negotiation_status=status,
                counter_offer_id=counter_id if counter else None,
                counter_amount=counter_amount if counter else None,
            )
        elif event.kind == EventKind.OFFER_WITHDRAWN:
            offer_id, amount = _offer_fields(payload.get("offer"))
            audit_logger.log_offer_withdrawn(
                negotiation_id=event.negotiation_id,
                property_id=event.property_id,
                actor_id=event.actor_id,
                offer_id=offer_id,
                amount=amount,
            )
        elif event.kind == EventKind.MESSAGE_APPENDED:
            message = payload.get("message") or {}
            audit_logger.log_message_sent(
                negotiation_id=event.negotiation_id,
                property_id=event.property_id,
                actor_id=event.actor_id,
                recipient_id=str(message.get("recipient", "")),
                message_type=str(message.get("type", "")),
                related_offer=message.get("related_offer"),
            )
        elif event.kind == EventKind.STATUS_CHANGED:
            audit_logger.log_status_change(
                negotiation_id=event.negotiation_id,
                property_id=event.property_id,
                actor_id=event.actor_id,
                from_status=str(payload.get("from_status", "")),
                to_status=str(payload.get("to_status", status)),
            )
        else:
            logger.warning("audit_unhandled_event", event_kind=str(event.kind))

    return handle


def wire_audit_to_event_bus(bus: EventBus, audit_logger: AuditLogger) -> Callable[[], None]:
    """Subscribe the audit trail to *bus*.

    Returns:
        A function that removes the subscription.
    """
    return bus.subscribe(create_audit_handler(audit_logger))

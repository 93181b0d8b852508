"""Audit trail models for tracking negotiation activity.

Each entry carries the negotiation and property identifiers, the acting user,
the negotiation status after the action, and arbitrary string metadata.
"""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the audit trail."""

    NEGOTIATION_CREATED = "negotiation_created"
    OFFER_SUBMITTED = "offer_submitted"
    OFFER_RESPONDED = "offer_responded"
    OFFER_WITHDRAWN = "offer_withdrawn"
    MESSAGE_SENT = "message_sent"
    STATUS_CHANGED = "status_changed"
    ERROR = "error"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    All fields except event_type are optional to accommodate different
    event types (e.g., an error may not have an offer id).
    """

    event_type: EventType
    negotiation_id: str | None = None
    property_id: str | None = None
    actor_id: str | None = None
    negotiation_status: str | None = None
    offer_id: str | None = None
    amount: str | None = None
    message_type: str | None = None
    metadata: dict[str, str] | None = None

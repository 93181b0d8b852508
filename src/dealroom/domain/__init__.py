"""Domain types, models, and errors for real-estate negotiations."""

from dealroom.domain.errors import (
    ConcurrentModificationError,
    DuplicateActiveNegotiationError,
    ForbiddenError,
    InvalidActionError,
    NegotiationClosedError,
    NegotiationError,
    NegotiationNotFoundError,
    NegotiationValidationError,
    NotFoundError,
    OfferNotFoundError,
    PropertyNotFoundError,
)
from dealroom.domain.models import (
    Actor,
    Attachment,
    Contingency,
    DownPayment,
    Message,
    MessageDraft,
    Negotiation,
    NegotiationMetadata,
    Offer,
    OfferDocument,
    OfferSubmission,
    OfferTerms,
    TimelineEvent,
)
from dealroom.domain.types import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    ActorRole,
    ContingencyType,
    DocumentType,
    FinancingType,
    MessageType,
    NegotiationStatus,
    OfferStatus,
    ParticipantRole,
    ResponseAction,
    TimelineEventKind,
)

__all__ = [
    "OPEN_STATUSES",
    "TERMINAL_STATUSES",
    "Actor",
    "ActorRole",
    "Attachment",
    "ConcurrentModificationError",
    "Contingency",
    "ContingencyType",
    "DocumentType",
    "DownPayment",
    "DuplicateActiveNegotiationError",
    "FinancingType",
    "ForbiddenError",
    "InvalidActionError",
    "Message",
    "MessageDraft",
    "MessageType",
    "Negotiation",
    "NegotiationClosedError",
    "NegotiationError",
    "NegotiationMetadata",
    "NegotiationNotFoundError",
    "NegotiationStatus",
    "NegotiationValidationError",
    "NotFoundError",
    "Offer",
    "OfferDocument",
    "OfferNotFoundError",
    "OfferStatus",
    "OfferSubmission",
    "OfferTerms",
    "ParticipantRole",
    "PropertyNotFoundError",
    "ResponseAction",
    "TimelineEvent",
    "TimelineEventKind",
]

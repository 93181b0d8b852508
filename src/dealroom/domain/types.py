"""Domain enumerations for the negotiation lifecycle."""

from enum import StrEnum


class NegotiationStatus(StrEnum):
    """States a negotiation can be in."""

    ACTIVE = "active"
    PENDING_ACCEPTANCE = "pending-acceptance"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class OfferStatus(StrEnum):
    """States of a single offer within a negotiation."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"
    WITHDRAWN = "withdrawn"


class MessageType(StrEnum):
    """Kinds of entries in a negotiation's message thread."""

    MESSAGE = "message"
    OFFER = "offer"
    COUNTER_OFFER = "counter-offer"
    ACCEPTANCE = "acceptance"
    REJECTION = "rejection"
    DOCUMENT = "document"
    SYSTEM = "system"


class FinancingType(StrEnum):
    """How the buyer intends to pay."""

    CASH = "cash"
    CONVENTIONAL = "conventional"
    FHA = "fha"
    VA = "va"
    USDA = "usda"
    OTHER = "other"


class ContingencyType(StrEnum):
    """Conditions an offer can be made subject to."""

    INSPECTION = "inspection"
    FINANCING = "financing"
    APPRAISAL = "appraisal"
    SALE_OF_HOME = "sale-of-home"
    OTHER = "other"


class DocumentType(StrEnum):
    """Supporting documents attached to an offer."""

    PRE_APPROVAL = "pre-approval"
    PROOF_OF_FUNDS = "proof-of-funds"
    CONTRACT = "contract"
    ADDENDUM = "addendum"
    OTHER = "other"


class TimelineEventKind(StrEnum):
    """Audit events recorded on a negotiation's timeline."""

    NEGOTIATION_STARTED = "negotiation-started"
    OFFER_SUBMITTED = "offer-submitted"
    OFFER_COUNTERED = "offer-countered"
    OFFER_ACCEPTED = "offer-accepted"
    OFFER_REJECTED = "offer-rejected"
    OFFER_WITHDRAWN = "offer-withdrawn"
    STATUS_CHANGED = "status-changed"
    DOCUMENT_UPLOADED = "document-uploaded"
    INSPECTION_SCHEDULED = "inspection-scheduled"
    CLOSING_SCHEDULED = "closing-scheduled"


class ParticipantRole(StrEnum):
    """Seats at the negotiating table."""

    BUYER = "buyer"
    SELLER = "seller"
    BUYER_AGENT = "buyer-agent"
    SELLER_AGENT = "seller-agent"


class ActorRole(StrEnum):
    """Account roles supplied by the upstream identity provider."""

    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class ResponseAction(StrEnum):
    """Ways the selling side can answer an offer."""

    ACCEPT = "accept"
    REJECT = "reject"
    COUNTER = "counter"


# Once reached, no further offers, responses, or messages are accepted.
TERMINAL_STATUSES: frozenset[NegotiationStatus] = frozenset(
    {
        NegotiationStatus.ACCEPTED,
        NegotiationStatus.REJECTED,
        NegotiationStatus.EXPIRED,
        NegotiationStatus.CANCELLED,
    }
)

# A (property, buyer) pair may have at most one negotiation in these states.
OPEN_STATUSES: frozenset[NegotiationStatus] = frozenset(
    {NegotiationStatus.ACTIVE, NegotiationStatus.PENDING_ACCEPTANCE}
)

BUYING_SIDE: frozenset[ParticipantRole] = frozenset(
    {ParticipantRole.BUYER, ParticipantRole.BUYER_AGENT}
)

SELLING_SIDE: frozenset[ParticipantRole] = frozenset(
    {ParticipantRole.SELLER, ParticipantRole.SELLER_AGENT}
)

"""Pydantic v2 models for negotiation records.

Monetary values use Decimal.  Floats arriving from JSON bodies are converted
through ``str()`` so binary rounding artefacts never reach storage.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dealroom.domain.types import (
    TERMINAL_STATUSES,
    ActorRole,
    ContingencyType,
    DocumentType,
    FinancingType,
    MessageType,
    NegotiationStatus,
    OfferStatus,
    ParticipantRole,
    TimelineEventKind,
)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def _as_utc(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v.astimezone(UTC)


def _coerce_money(v: object) -> object:
    if isinstance(v, float):
        return Decimal(str(v))
    return v


class Actor(BaseModel):
    """An authenticated caller as reported by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: ActorRole = ActorRole.USER

    @field_validator("id")
    @classmethod
    def id_must_not_be_empty(cls, v: str) -> str:
        """Ensure the actor id is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("actor id must not be empty")
        return v

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


# ---------------------------------------------------------------------------
# Offer terms
# ---------------------------------------------------------------------------


class Contingency(BaseModel):
    """A condition the offer is subject to."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ContingencyType
    description: str | None = None
    deadline: datetime | None = None

    @field_validator("deadline")
    @classmethod
    def deadline_to_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class DownPayment(BaseModel):
    """Down payment expressed as an amount, a percentage, or both."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    amount: Decimal | None = None
    percentage: Decimal | None = None

    @field_validator("amount", "percentage", mode="before")
    @classmethod
    def convert_float_inputs(cls, v: object) -> object:
        """Route floats through ``str`` to keep decimal precision."""
        return _coerce_money(v)

    @field_validator("amount")
    @classmethod
    def amount_must_not_be_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("down payment amount must not be negative")
        return v

    @field_validator("percentage")
    @classmethod
    def percentage_must_be_in_range(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and not (0 <= v <= 100):
            raise ValueError("down payment percentage must be between 0 and 100")
        return v


class OfferTerms(BaseModel):
    """The closed set of terms that accompany an offer price.

    Unknown keys are rejected so that loosely-typed client payloads cannot
    smuggle arbitrary data into the negotiation record.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    closing_date: datetime | None = None
    financing_type: FinancingType | None = None
    contingencies: list[Contingency] = Field(default_factory=list)
    down_payment: DownPayment | None = None
    earnest_money: Decimal | None = None
    inspection_period: int | None = Field(default=None, description="Days")
    additional_terms: str | None = None

    @field_validator("earnest_money", mode="before")
    @classmethod
    def convert_float_inputs(cls, v: object) -> object:
        """Route floats through ``str`` to keep decimal precision."""
        return _coerce_money(v)

    @field_validator("earnest_money")
    @classmethod
    def earnest_money_must_not_be_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("earnest_money must not be negative")
        return v

    @field_validator("inspection_period")
    @classmethod
    def inspection_period_must_not_be_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("inspection_period must not be negative")
        return v

    @field_validator("closing_date")
    @classmethod
    def closing_date_to_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class OfferDocument(BaseModel):
    """A document supporting an offer (pre-approval letter, contract, ...)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    url: str
    type: DocumentType = DocumentType.OTHER
    uploaded_at: datetime = Field(default_factory=utcnow)


class OfferSubmission(BaseModel):
    """Inbound payload for a new offer or a counter-offer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    amount: Decimal
    terms: OfferTerms = Field(default_factory=OfferTerms)
    expires_at: datetime | None = None
    response_by: datetime | None = None
    documents: list[OfferDocument] = Field(default_factory=list)

    @field_validator("amount", mode="before")
    @classmethod
    def convert_float_inputs(cls, v: object) -> object:
        """Route floats through ``str`` to keep decimal precision."""
        return _coerce_money(v)

    @field_validator("amount")
    @classmethod
    def amount_must_not_be_negative(cls, v: Decimal) -> Decimal:
        """Ensure the offered amount is zero or more."""
        if v < 0:
            raise ValueError("amount must not be negative")
        return v

    @field_validator("expires_at", "response_by")
    @classmethod
    def dates_to_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


# ---------------------------------------------------------------------------
# Records owned by a negotiation
# ---------------------------------------------------------------------------


class Offer(BaseModel):
    """One priced, timed proposal within a negotiation."""

    id: str = Field(default_factory=new_id)
    amount: Decimal
    terms: OfferTerms = Field(default_factory=OfferTerms)
    status: OfferStatus = OfferStatus.PENDING
    submitted_by: str
    submitted_at: datetime
    expires_at: datetime
    response_by: datetime | None = None
    responded_at: datetime | None = None
    documents: list[OfferDocument] = Field(default_factory=list)

    @field_validator("amount")
    @classmethod
    def amount_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("amount must not be negative")
        return v


class Attachment(BaseModel):
    """A file reference attached to a message."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    url: str
    size: int | None = None
    mime_type: str | None = None


class MessageDraft(BaseModel):
    """Inbound payload for a message before it is stamped and appended."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    recipient: str
    message: str
    type: MessageType = MessageType.MESSAGE
    attachments: list[Attachment] = Field(default_factory=list)
    related_offer: str | None = None

    @field_validator("recipient")
    @classmethod
    def recipient_must_not_be_empty(cls, v: str) -> str:
        """Ensure a recipient is given."""
        if not v.strip():
            raise ValueError("recipient is required")
        return v

    @field_validator("message")
    @classmethod
    def message_must_not_be_blank(cls, v: str) -> str:
        """Strip surrounding whitespace and reject empty text."""
        v = v.strip()
        if not v:
            raise ValueError("message cannot be empty")
        return v


class Message(BaseModel):
    """A chat or system entry in a negotiation thread."""

    id: str = Field(default_factory=new_id)
    sender: str
    recipient: str
    message: str
    type: MessageType = MessageType.MESSAGE
    related_offer: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    is_read: bool = False
    read_at: datetime | None = None
    timestamp: datetime


class TimelineEvent(BaseModel):
    """An append-only audit entry describing a negotiation-affecting action."""

    model_config = ConfigDict(frozen=True)

    event: TimelineEventKind
    description: str
    user: str | None = None
    timestamp: datetime


class NegotiationMetadata(BaseModel):
    """Denormalized counters and activity timestamps."""

    started_at: datetime
    last_activity: datetime
    total_offers: int = 0
    total_messages: int = 0
    average_response_time: float | None = Field(default=None, description="Minutes")


# ---------------------------------------------------------------------------
# Aggregate record
# ---------------------------------------------------------------------------


class Negotiation(BaseModel):
    """One buyer's offer and message history against one property.

    Participants are held as an explicit role -> actor id mapping; the buyer
    seat is always filled.  Mutation goes through
    :class:`dealroom.state_machine.NegotiationStateMachine`.
    """

    id: str = Field(default_factory=new_id)
    property_id: str
    participants: dict[ParticipantRole, str]
    status: NegotiationStatus = NegotiationStatus.ACTIVE
    offers: list[Offer] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    current_offer: str | None = None
    timeline: list[TimelineEvent] = Field(default_factory=list)
    metadata: NegotiationMetadata
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @field_validator("property_id")
    @classmethod
    def property_id_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("property_id must not be empty")
        return v

    @field_validator("participants")
    @classmethod
    def buyer_seat_required(cls, v: dict[ParticipantRole, str]) -> dict[ParticipantRole, str]:
        """Require a buyer and drop empty seats."""
        seats = {role: actor for role, actor in v.items() if actor}
        if ParticipantRole.BUYER not in seats:
            raise ValueError("a negotiation requires a buyer")
        return seats

    @model_validator(mode="after")
    def counters_match_contents(self) -> Negotiation:
        """Reject records whose metadata or current offer disagree with their lists."""
        if self.metadata.total_offers != len(self.offers):
            raise ValueError(
                f"metadata.total_offers ({self.metadata.total_offers}) "
                f"!= number of offers ({len(self.offers)})"
            )
        if self.metadata.total_messages != len(self.messages):
            raise ValueError(
                f"metadata.total_messages ({self.metadata.total_messages}) "
                f"!= number of messages ({len(self.messages)})"
            )
        if self.offers and self.current_offer != self.offers[-1].id:
            raise ValueError("current_offer must reference the most recent offer")
        return self

    @property
    def buyer(self) -> str:
        return self.participants[ParticipantRole.BUYER]

    @property
    def seller(self) -> str | None:
        return self.participants.get(ParticipantRole.SELLER)

    @property
    def buyer_agent(self) -> str | None:
        return self.participants.get(ParticipantRole.BUYER_AGENT)

    @property
    def seller_agent(self) -> str | None:
        return self.participants.get(ParticipantRole.SELLER_AGENT)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def roles_of(self, actor_id: str) -> frozenset[ParticipantRole]:
        """Return every seat *actor_id* occupies (empty if not a participant)."""
        return frozenset(role for role, actor in self.participants.items() if actor == actor_id)

    def is_participant(self, actor_id: str) -> bool:
        return bool(self.roles_of(actor_id))

    def get_participants(self) -> list[str]:
        """Return participant ids in seat order: buyer, seller, buyer agent, seller agent."""
        order = (
            ParticipantRole.BUYER,
            ParticipantRole.SELLER,
            ParticipantRole.BUYER_AGENT,
            ParticipantRole.SELLER_AGENT,
        )
        return [self.participants[role] for role in order if role in self.participants]

    def find_offer(self, offer_id: str) -> Offer | None:
        for offer in self.offers:
            if offer.id == offer_id:
                return offer
        return None

"""Transition table for seller-side responses to offers."""

from __future__ import annotations

from dataclasses import dataclass

from dealroom.domain.types import (
    MessageType,
    NegotiationStatus,
    OfferStatus,
    ResponseAction,
    TimelineEventKind,
)


@dataclass(frozen=True)
class ResponseOutcome:
    """What a seller-side response does to the offer and the negotiation.

    Attributes:
        offer_status: New status of the offer being answered.
        negotiation_status: New negotiation status, or ``None`` to leave it.
        message_type: Type of the follow-up message sent to the submitter.
        timeline_event: Timeline entry recorded for the response.
        template: Follow-up message text; ``{amount}`` is the formatted price
            of the answered offer (or of the counter for ``counter``).
    """

    offer_status: OfferStatus
    negotiation_status: NegotiationStatus | None
    message_type: MessageType
    timeline_event: TimelineEventKind
    template: str


RESPONSE_OUTCOMES: dict[ResponseAction, ResponseOutcome] = {
    ResponseAction.ACCEPT: ResponseOutcome(
        offer_status=OfferStatus.ACCEPTED,
        negotiation_status=NegotiationStatus.ACCEPTED,
        message_type=MessageType.ACCEPTANCE,
        timeline_event=TimelineEventKind.OFFER_ACCEPTED,
        template="Offer of {amount} has been accepted!",
    ),
    ResponseAction.REJECT: ResponseOutcome(
        offer_status=OfferStatus.REJECTED,
        negotiation_status=None,
        message_type=MessageType.REJECTION,
        timeline_event=TimelineEventKind.OFFER_REJECTED,
        template="Offer of {amount} has been rejected.",
    ),
    ResponseAction.COUNTER: ResponseOutcome(
        offer_status=OfferStatus.COUNTERED,
        negotiation_status=None,
        message_type=MessageType.COUNTER_OFFER,
        timeline_event=TimelineEventKind.OFFER_COUNTERED,
        template="Counter offer of {amount} has been made.",
    ),
}

# Only pending offers can be answered or withdrawn.
RESPONDABLE_OFFER_STATUSES: frozenset[OfferStatus] = frozenset({OfferStatus.PENDING})

"""NegotiationStateMachine: the aggregate that owns every mutation of a negotiation."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from dealroom.domain.errors import (
    ForbiddenError,
    InvalidActionError,
    NegotiationClosedError,
    NegotiationValidationError,
    OfferNotFoundError,
)
from dealroom.domain.models import (
    Attachment,
    Message,
    MessageDraft,
    Negotiation,
    NegotiationMetadata,
    Offer,
    OfferSubmission,
    TimelineEvent,
    utcnow,
)
from dealroom.domain.types import (
    BUYING_SIDE,
    SELLING_SIDE,
    MessageType,
    NegotiationStatus,
    OfferStatus,
    ParticipantRole,
    ResponseAction,
    TimelineEventKind,
)
from dealroom.events import EventKind, NegotiationEvent
from dealroom.state_machine.transitions import RESPONDABLE_OFFER_STATUSES, RESPONSE_OUTCOMES

DEFAULT_OFFER_TTL = timedelta(hours=48)

M = TypeVar("M", bound=BaseModel)


def format_amount(amount: Decimal) -> str:
    """Render a price the way it appears in generated messages (``$400,000``)."""
    return f"${amount:,f}"


def _parse(model: type[M], data: M | Mapping[str, Any], what: str) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise NegotiationValidationError(
            f"Invalid {what}",
            errors=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


class NegotiationStateMachine:
    """Consistent mutation of one :class:`Negotiation`.

    Each operation checks permissions and validates its payload before it
    touches the record, so a failed call leaves the negotiation exactly as it
    was.  Successful calls keep the denormalized metadata in step with the
    offer and message lists, append to the timeline, and queue a
    :class:`NegotiationEvent` that callers drain with :meth:`pull_events`.

    Usage::

        sm = NegotiationStateMachine.create("prop-1", buyer="u-buyer", seller="u-seller")
        offer = sm.submit_offer("u-buyer", {"amount": 400000})
        sm.respond_to_offer("u-seller", offer.id, "accept")
        sm.status  # -> NegotiationStatus.ACCEPTED
    """

    def __init__(
        self,
        negotiation: Negotiation,
        *,
        clock: Callable[[], datetime] = utcnow,
        offer_ttl: timedelta = DEFAULT_OFFER_TTL,
    ) -> None:
        self._negotiation = negotiation
        self._clock = clock
        self._offer_ttl = offer_ttl
        self._events: list[NegotiationEvent] = []

    @classmethod
    def create(
        cls,
        property_id: str,
        buyer: str,
        seller: str | None = None,
        buyer_agent: str | None = None,
        seller_agent: str | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        offer_ttl: timedelta = DEFAULT_OFFER_TTL,
    ) -> NegotiationStateMachine:
        """Start a new negotiation in ``active`` status.

        Checking for an existing open negotiation on the same (property, buyer)
        pair needs the store and is done by the service before calling this.

        Raises:
            NegotiationValidationError: If the property or buyer id is empty.
        """
        now = clock()
        seats = {
            ParticipantRole.BUYER: buyer,
            ParticipantRole.SELLER: seller,
            ParticipantRole.BUYER_AGENT: buyer_agent,
            ParticipantRole.SELLER_AGENT: seller_agent,
        }
        record = _parse(
            Negotiation,
            {
                "property_id": property_id,
                "participants": {role: actor for role, actor in seats.items() if actor},
                "metadata": NegotiationMetadata(started_at=now, last_activity=now),
                "timeline": [
                    TimelineEvent(
                        event=TimelineEventKind.NEGOTIATION_STARTED,
                        description=f"Negotiation started for property {property_id}",
                        user=buyer,
                        timestamp=now,
                    )
                ],
                "created_at": now,
                "updated_at": now,
            },
            "negotiation",
        )
        instance = cls(record, clock=clock, offer_ttl=offer_ttl)
        instance._emit(
            EventKind.NEGOTIATION_CREATED,
            buyer,
            now,
            {"property_id": property_id, "participants": record.get_participants()},
        )
        return instance

    @classmethod
    def from_snapshot(
        cls,
        negotiation: Negotiation,
        *,
        clock: Callable[[], datetime] = utcnow,
        offer_ttl: timedelta = DEFAULT_OFFER_TTL,
    ) -> NegotiationStateMachine:
        """Wrap a persisted negotiation without replaying anything."""
        return cls(negotiation, clock=clock, offer_ttl=offer_ttl)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def negotiation(self) -> Negotiation:
        """Return the live record.  Mutate it only through this class."""
        return self._negotiation

    @property
    def id(self) -> str:
        return self._negotiation.id

    @property
    def status(self) -> NegotiationStatus:
        return self._negotiation.status

    @property
    def is_terminal(self) -> bool:
        return self._negotiation.is_terminal

    def snapshot(self) -> Negotiation:
        """Return a deep copy of the record, safe to hand to other layers."""
        return self._negotiation.model_copy(deep=True)

    def get_participants(self) -> list[str]:
        return self._negotiation.get_participants()

    def pull_events(self) -> list[NegotiationEvent]:
        """Return and clear the events recorded since the last call."""
        events, self._events = self._events, []
        return events

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def submit_offer(
        self,
        actor_id: str,
        submission: OfferSubmission | Mapping[str, Any],
    ) -> Offer:
        """Append a pending offer from the buying side.

        Args:
            actor_id: Must hold the buyer or buyer-agent seat.
            submission: Price, terms, and optional expiry.  Without
                ``expires_at`` the offer expires after the configured TTL
                (48 hours by default).

        Returns:
            The appended offer, now the negotiation's current offer.

        Raises:
            ForbiddenError: If the actor is not on the buying side.
            NegotiationClosedError: If the negotiation is in a terminal state.
            NegotiationValidationError: If the payload is malformed.
        """
        self._require_side(actor_id, BUYING_SIDE, "submit offers")
        self._require_open()
        payload = _parse(OfferSubmission, submission, "offer")
        now = self._clock()
        self._check_expiry(payload, now)

        offer = self._append_offer(actor_id, payload, now)
        self._emit(
            EventKind.OFFER_SUBMITTED,
            actor_id,
            now,
            {"offer": offer.model_dump(mode="json")},
        )
        return offer

    def respond_to_offer(
        self,
        actor_id: str,
        offer_id: str,
        action: ResponseAction | str,
        counter_offer: OfferSubmission | Mapping[str, Any] | None = None,
    ) -> Offer:
        """Accept, reject, or counter a pending offer from the selling side.

        Every response sends a follow-up message to the offer's submitter.
        Accepting also closes the negotiation as ``accepted``; countering
        appends the counter as a new pending offer submitted by *actor_id*.

        Returns:
            The offer that was answered (not the counter).

        Raises:
            ForbiddenError: If the actor is not on the selling side.
            OfferNotFoundError: If *offer_id* is not in this negotiation.
            InvalidActionError: If *action* is unknown or the offer is no
                longer pending.
            NegotiationClosedError: If the negotiation is in a terminal state.
            NegotiationValidationError: If ``counter`` is missing or malformed
                counter terms.
        """
        self._require_side(actor_id, SELLING_SIDE, "respond to offers")
        offer = self._get_offer(offer_id)
        try:
            response = ResponseAction(action)
        except ValueError:
            raise InvalidActionError(str(action)) from None
        self._require_open()
        if offer.status not in RESPONDABLE_OFFER_STATUSES:
            raise InvalidActionError(response.value, f"offer is already {offer.status}")

        counter: OfferSubmission | None = None
        if response == ResponseAction.COUNTER:
            if counter_offer is None:
                raise NegotiationValidationError("A counter action requires counter offer terms")
            counter = _parse(OfferSubmission, counter_offer, "counter offer")

        now = self._clock()
        if counter is not None:
            self._check_expiry(counter, now)

        outcome = RESPONSE_OUTCOMES[response]
        offer.status = outcome.offer_status
        offer.responded_at = now
        if outcome.negotiation_status is not None:
            self._negotiation.status = outcome.negotiation_status

        related_offer = offer
        if counter is not None:
            related_offer = self._append_offer(actor_id, counter, now)

        self._record(
            outcome.timeline_event,
            f"Offer of {format_amount(offer.amount)} {outcome.offer_status} by {actor_id}",
            actor_id,
            now,
        )
        message = self._append_message(
            actor_id,
            MessageDraft(
                recipient=offer.submitted_by,
                message=outcome.template.format(amount=format_amount(related_offer.amount)),
                type=outcome.message_type,
                related_offer=related_offer.id,
            ),
            now,
        )
        self._update_average_response_time()

        self._emit(
            EventKind.OFFER_RESPONDED,
            actor_id,
            now,
            {
                "action": response.value,
                "offer": offer.model_dump(mode="json"),
                "counter_offer": (
                    related_offer.model_dump(mode="json") if counter is not None else None
                ),
                "status": self._negotiation.status.value,
            },
        )
        self._emit(
            EventKind.MESSAGE_APPENDED,
            actor_id,
            now,
            {"message": message.model_dump(mode="json")},
        )
        return offer

    def withdraw_offer(self, actor_id: str, offer_id: str) -> Offer:
        """Withdraw a pending offer.  Only its submitter may do so.

        The other side gets a ``system`` message about the withdrawal: the
        buyer for a withdrawn counter, otherwise the seller (or the seller
        agent when no seller is seated).

        Raises:
            OfferNotFoundError: If *offer_id* is not in this negotiation.
            ForbiddenError: If *actor_id* did not submit the offer.
            NegotiationClosedError: If the negotiation is in a terminal state.
            InvalidActionError: If the offer is no longer pending.
        """
        offer = self._get_offer(offer_id)
        if offer.submitted_by != actor_id:
            raise ForbiddenError(actor_id, "withdraw offers", "only the submitter may withdraw")
        self._require_open()
        if offer.status not in RESPONDABLE_OFFER_STATUSES:
            raise InvalidActionError("withdraw", f"offer is already {offer.status}")

        now = self._clock()
        offer.status = OfferStatus.WITHDRAWN
        self._record(
            TimelineEventKind.OFFER_WITHDRAWN,
            f"Offer of {format_amount(offer.amount)} withdrawn by {actor_id}",
            actor_id,
            now,
        )
        self._touch(now)
        self._emit(
            EventKind.OFFER_WITHDRAWN,
            actor_id,
            now,
            {"offer": offer.model_dump(mode="json")},
        )
        if self._negotiation.roles_of(actor_id) & SELLING_SIDE:
            counterparty = self._negotiation.buyer
        else:
            counterparty = self._negotiation.seller or self._negotiation.seller_agent
        if counterparty is not None:
            message = self._append_message(
                actor_id,
                MessageDraft(
                    recipient=counterparty,
                    message=f"Offer of {format_amount(offer.amount)} has been withdrawn.",
                    type=MessageType.SYSTEM,
                    related_offer=offer.id,
                ),
                now,
            )
            self._emit(
                EventKind.MESSAGE_APPENDED,
                actor_id,
                now,
                {"message": message.model_dump(mode="json")},
            )
        return offer

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(
        self,
        actor_id: str,
        recipient: str,
        text: str,
        message_type: MessageType | str = MessageType.MESSAGE,
        attachments: Iterable[Attachment | Mapping[str, Any]] | None = None,
        related_offer: str | None = None,
    ) -> Message:
        """Append a message from a participant.

        Raises:
            ForbiddenError: If *actor_id* is not a participant.
            NegotiationClosedError: If the negotiation is in a terminal state.
            NegotiationValidationError: If the recipient or text is missing,
                the type is unknown, or an attachment is malformed.
            OfferNotFoundError: If *related_offer* is not in this negotiation.
        """
        self._require_participant(actor_id, "send messages")
        self._require_open()
        draft = _parse(
            MessageDraft,
            {
                "recipient": recipient or "",
                "message": text or "",
                "type": message_type,
                "attachments": list(attachments or []),
                "related_offer": related_offer,
            },
            "message",
        )
        if draft.related_offer is not None:
            self._get_offer(draft.related_offer)

        now = self._clock()
        message = self._append_message(actor_id, draft, now)
        self._emit(
            EventKind.MESSAGE_APPENDED,
            actor_id,
            now,
            {"message": message.model_dump(mode="json")},
        )
        return message

    def mark_read(self, actor_id: str, message_ids: Iterable[str] | None = None) -> int:
        """Mark messages addressed to *actor_id* as read.

        Allowed on closed negotiations.  Reading is not negotiation activity,
        so ``last_activity`` is left alone.

        Args:
            actor_id: Must be a participant.
            message_ids: Restrict to these ids; ``None`` marks every unread
                message addressed to the actor.

        Returns:
            How many messages changed from unread to read.
        """
        self._require_participant(actor_id, "read messages")
        wanted = set(message_ids) if message_ids is not None else None
        now = self._clock()
        marked = 0
        for message in self._negotiation.messages:
            if message.recipient != actor_id or message.is_read:
                continue
            if wanted is not None and message.id not in wanted:
                continue
            message.is_read = True
            message.read_at = now
            marked += 1
        if marked:
            self._negotiation.updated_at = max(self._negotiation.updated_at, now)
        return marked

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(self, actor_id: str, new_status: NegotiationStatus | str) -> NegotiationStatus:
        """Set the negotiation status directly.

        Any value of :class:`NegotiationStatus` may be set from a non-terminal
        state; a terminal negotiation cannot change status again.

        Raises:
            ForbiddenError: If *actor_id* is not a participant.
            NegotiationValidationError: If *new_status* is not a known status.
            NegotiationClosedError: If the negotiation is already terminal.
        """
        self._require_participant(actor_id, "change status")
        try:
            status = NegotiationStatus(new_status)
        except ValueError:
            raise NegotiationValidationError(
                f"Invalid status '{new_status}'",
                errors=[{"loc": ["status"], "msg": "Invalid status", "type": "enum"}],
            ) from None
        self._require_open()

        now = self._clock()
        previous = self._negotiation.status
        self._negotiation.status = status
        self._record(
            TimelineEventKind.STATUS_CHANGED,
            f"Status changed from {previous} to {status} by {actor_id}",
            actor_id,
            now,
        )
        self._touch(now)
        self._emit(
            EventKind.STATUS_CHANGED,
            actor_id,
            now,
            {"from_status": previous.value, "to_status": status.value},
        )
        return status

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_side(
        self, actor_id: str, side: frozenset[ParticipantRole], operation: str
    ) -> None:
        if not self._negotiation.roles_of(actor_id) & side:
            seats = " or ".join(sorted(role.value for role in side))
            raise ForbiddenError(actor_id, operation, f"only {seats} may {operation}")

    def _require_participant(self, actor_id: str, operation: str) -> None:
        if not self._negotiation.is_participant(actor_id):
            raise ForbiddenError(actor_id, operation, "must be a negotiation participant")

    def _require_open(self) -> None:
        if self._negotiation.is_terminal:
            raise NegotiationClosedError(self._negotiation.id, self._negotiation.status)

    def _get_offer(self, offer_id: str) -> Offer:
        offer = self._negotiation.find_offer(offer_id)
        if offer is None:
            raise OfferNotFoundError(self._negotiation.id, offer_id)
        return offer

    def _check_expiry(self, payload: OfferSubmission, now: datetime) -> None:
        if payload.expires_at is not None and payload.expires_at <= now:
            raise NegotiationValidationError(
                "Offer expiry must be in the future",
                errors=[
                    {"loc": ["expires_at"], "msg": "must be in the future", "type": "value_error"}
                ],
            )

    def _append_offer(self, actor_id: str, payload: OfferSubmission, now: datetime) -> Offer:
        offer = Offer(
            amount=payload.amount,
            terms=payload.terms,
            submitted_by=actor_id,
            submitted_at=now,
            expires_at=payload.expires_at or now + self._offer_ttl,
            response_by=payload.response_by,
            documents=list(payload.documents),
        )
        record = self._negotiation
        record.offers.append(offer)
        record.current_offer = offer.id
        record.metadata.total_offers = len(record.offers)
        self._record(
            TimelineEventKind.OFFER_SUBMITTED,
            f"Offer submitted for {format_amount(offer.amount)} by {actor_id}",
            actor_id,
            now,
        )
        self._touch(now)
        return offer

    def _append_message(self, actor_id: str, draft: MessageDraft, now: datetime) -> Message:
        message = Message(
            sender=actor_id,
            recipient=draft.recipient,
            message=draft.message,
            type=draft.type,
            related_offer=draft.related_offer,
            attachments=list(draft.attachments),
            timestamp=now,
        )
        record = self._negotiation
        record.messages.append(message)
        record.metadata.total_messages = len(record.messages)
        self._touch(now)
        return message

    def _record(
        self, kind: TimelineEventKind, description: str, actor_id: str, now: datetime
    ) -> None:
        self._negotiation.timeline.append(
            TimelineEvent(event=kind, description=description, user=actor_id, timestamp=now)
        )

    def _touch(self, now: datetime) -> None:
        # last_activity never moves backwards, even if the clock does
        meta = self._negotiation.metadata
        meta.last_activity = max(meta.last_activity, now)
        self._negotiation.updated_at = max(self._negotiation.updated_at, now)

    def _update_average_response_time(self) -> None:
        durations = [
            (offer.responded_at - offer.submitted_at).total_seconds() / 60
            for offer in self._negotiation.offers
            if offer.responded_at is not None
        ]
        if durations:
            self._negotiation.metadata.average_response_time = sum(durations) / len(durations)

    def _emit(
        self, kind: EventKind, actor_id: str, now: datetime, payload: dict[str, Any]
    ) -> None:
        self._events.append(
            NegotiationEvent(
                kind=kind,
                negotiation_id=self._negotiation.id,
                actor_id=actor_id,
                timestamp=now,
                payload=payload,
                property_id=self._negotiation.property_id,
                status=self._negotiation.status.value,
            )
        )

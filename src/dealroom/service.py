"""Negotiation service: the request-scoped entry point for every operation.

Each mutating call loads the negotiation, applies one aggregate operation, and
writes it back under a per-negotiation lock.  The store's version check
catches writers in other processes; a lost race is retried with a fresh load
(see :mod:`dealroom.resilience.retry`).  Events are published only after the
write commits.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

import structlog

from dealroom.catalog import PropertyCatalog
from dealroom.domain.errors import (
    DuplicateActiveNegotiationError,
    ForbiddenError,
    NegotiationValidationError,
    PropertyNotFoundError,
)
from dealroom.domain.models import (
    Actor,
    Attachment,
    Message,
    Negotiation,
    Offer,
    OfferSubmission,
    utcnow,
)
from dealroom.domain.types import MessageType, NegotiationStatus, ResponseAction
from dealroom.events import EventBus
from dealroom.resilience.retry import retry_on_conflict
from dealroom.state.store import MAX_SQLITE_INTEGER, NegotiationStore
from dealroom.state_machine import DEFAULT_OFFER_TTL, NegotiationStateMachine

logger = structlog.get_logger()

T = TypeVar("T")


class KeyedLocks:
    """One lock per key, created on demand and dropped when nobody holds it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass(frozen=True)
class Page:
    """One page of a participant's negotiations."""

    items: list[Negotiation]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """The item an operation produced plus the negotiation as saved."""

    value: T
    negotiation: Negotiation


class NegotiationService:
    """Coordinates the aggregate, the store, the catalog, and the event bus.

    Args:
        store: Negotiation persistence.
        catalog: Property lookup for creation.
        bus: Where committed events are published.
        clock: Time source handed to the aggregate.
        offer_ttl: Default offer lifetime.
        retry_attempts: Tries per write when a concurrent writer wins.
        default_page_size: Page size when the caller gives none.
        max_page_size: Upper bound on any requested page size.
    """

    def __init__(
        self,
        store: NegotiationStore,
        catalog: PropertyCatalog,
        bus: EventBus | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        offer_ttl: timedelta = DEFAULT_OFFER_TTL,
        retry_attempts: int = 3,
        default_page_size: int = 10,
        max_page_size: int = 100,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._bus = bus or EventBus()
        self._clock = clock
        self._offer_ttl = offer_ttl
        self._retry_attempts = retry_attempts
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._locks = KeyedLocks()

    @property
    def bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_negotiation(self, actor: Actor, negotiation_id: str) -> Negotiation:
        """Return a negotiation visible to *actor* (a participant or an admin).

        Raises:
            NegotiationNotFoundError: If the id is unknown.
            ForbiddenError: If the actor may not see it.
        """
        negotiation = self._store.get(negotiation_id)
        if not (actor.is_admin or negotiation.is_participant(actor.id)):
            raise ForbiddenError(actor.id, "view negotiation", "not a participant")
        return negotiation

    def list_negotiations(
        self,
        actor: Actor,
        *,
        status: NegotiationStatus | str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page:
        """List the actor's negotiations, most recent activity first.

        ``limit`` is clamped to the configured maximum page size.

        Raises:
            NegotiationValidationError: If *status* is unknown, *page* or
                *limit* is below 1, or *page* lies beyond any storable offset.
        """
        if page < 1:
            raise NegotiationValidationError(
                "page must be at least 1",
                errors=[{"loc": ["page"], "msg": "must be at least 1", "type": "value_error"}],
            )
        size = self._default_page_size if limit is None else limit
        if size < 1:
            raise NegotiationValidationError(
                "limit must be at least 1",
                errors=[{"loc": ["limit"], "msg": "must be at least 1", "type": "value_error"}],
            )
        size = min(size, self._max_page_size)
        if (page - 1) * size > MAX_SQLITE_INTEGER:
            raise NegotiationValidationError(
                f"page {page} is out of range",
                errors=[{"loc": ["page"], "msg": "out of range", "type": "value_error"}],
            )

        wanted: NegotiationStatus | None = None
        if status is not None:
            try:
                wanted = NegotiationStatus(status)
            except ValueError:
                raise NegotiationValidationError(
                    f"Invalid status '{status}'",
                    errors=[{"loc": ["status"], "msg": "Invalid status", "type": "enum"}],
                ) from None

        items, total = self._store.list_for_participant(
            actor.id, status=wanted, page=page, limit=size
        )
        return Page(items=items, page=page, limit=size, total=total)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_negotiation(
        self,
        actor: Actor,
        property_id: str,
        *,
        seller: str | None = None,
        buyer_agent: str | None = None,
        seller_agent: str | None = None,
    ) -> Negotiation:
        """Open a negotiation with *actor* as the buyer.

        When no seller is named, the property's owner (else its listing
        agent) is seated.

        Raises:
            PropertyNotFoundError: If the property is not in the catalog.
            DuplicateActiveNegotiationError: If the buyer already has an
                active or pending-acceptance negotiation on the property.
            NegotiationValidationError: If an id is malformed.
        """
        prop = self._catalog.get(property_id)
        if prop is None:
            raise PropertyNotFoundError(property_id)

        existing = self._store.find_open(property_id, actor.id)
        if existing is not None:
            raise DuplicateActiveNegotiationError(property_id, actor.id, existing.id)

        machine = NegotiationStateMachine.create(
            property_id,
            buyer=actor.id,
            seller=seller or prop.default_seller,
            buyer_agent=buyer_agent,
            seller_agent=seller_agent,
            clock=self._clock,
            offer_ttl=self._offer_ttl,
        )
        # the unique index still guards against a concurrent create slipping past find_open
        self._store.insert(machine.negotiation)
        self._bus.publish_all(machine.pull_events())
        logger.info(
            "negotiation_created",
            negotiation_id=machine.id,
            property_id=property_id,
            buyer_id=actor.id,
        )
        return machine.snapshot()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def submit_offer(
        self,
        actor: Actor,
        negotiation_id: str,
        submission: OfferSubmission | Mapping[str, Any],
    ) -> Outcome[Offer]:
        outcome = self._mutate(
            "submit_offer",
            negotiation_id,
            lambda machine: machine.submit_offer(actor.id, submission),
        )
        logger.info(
            "offer_submitted",
            negotiation_id=negotiation_id,
            offer_id=outcome.value.id,
            amount=str(outcome.value.amount),
        )
        return outcome

    def respond_to_offer(
        self,
        actor: Actor,
        negotiation_id: str,
        offer_id: str,
        action: ResponseAction | str,
        counter_offer: OfferSubmission | Mapping[str, Any] | None = None,
    ) -> Outcome[Offer]:
        outcome = self._mutate(
            "respond_to_offer",
            negotiation_id,
            lambda machine: machine.respond_to_offer(actor.id, offer_id, action, counter_offer),
        )
        logger.info(
            "offer_responded",
            negotiation_id=negotiation_id,
            offer_id=offer_id,
            action=str(action),
            status=outcome.negotiation.status.value,
        )
        return outcome

    def withdraw_offer(self, actor: Actor, negotiation_id: str, offer_id: str) -> Outcome[Offer]:
        outcome = self._mutate(
            "withdraw_offer",
            negotiation_id,
            lambda machine: machine.withdraw_offer(actor.id, offer_id),
        )
        logger.info("offer_withdrawn", negotiation_id=negotiation_id, offer_id=offer_id)
        return outcome

    def add_message(
        self,
        actor: Actor,
        negotiation_id: str,
        recipient: str,
        text: str,
        message_type: MessageType | str = MessageType.MESSAGE,
        attachments: Iterable[Attachment | Mapping[str, Any]] | None = None,
        related_offer: str | None = None,
    ) -> Outcome[Message]:
        outcome = self._mutate(
            "add_message",
            negotiation_id,
            lambda machine: machine.add_message(
                actor.id, recipient, text, message_type, attachments, related_offer
            ),
        )
        logger.info(
            "message_added",
            negotiation_id=negotiation_id,
            message_id=outcome.value.id,
            message_type=str(outcome.value.type),
        )
        return outcome

    def mark_read(
        self,
        actor: Actor,
        negotiation_id: str,
        message_ids: Iterable[str] | None = None,
    ) -> Outcome[int]:
        ids = list(message_ids) if message_ids is not None else None
        return self._mutate(
            "mark_read",
            negotiation_id,
            lambda machine: machine.mark_read(actor.id, ids),
            save_if=lambda marked: marked > 0,
        )

    def set_status(
        self,
        actor: Actor,
        negotiation_id: str,
        status: NegotiationStatus | str,
    ) -> Outcome[NegotiationStatus]:
        outcome = self._mutate(
            "set_status",
            negotiation_id,
            lambda machine: machine.set_status(actor.id, status),
        )
        logger.info(
            "negotiation_status_changed",
            negotiation_id=negotiation_id,
            status=outcome.value.value,
        )
        return outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _mutate(
        self,
        operation: str,
        negotiation_id: str,
        apply: Callable[[NegotiationStateMachine], T],
        save_if: Callable[[T], bool] | None = None,
    ) -> Outcome[T]:
        """Load, apply, save, then publish; retried when another writer wins."""

        @retry_on_conflict(operation, self._retry_attempts)
        def attempt() -> tuple[T, NegotiationStateMachine]:
            with self._locks.hold(negotiation_id):
                machine = NegotiationStateMachine.from_snapshot(
                    self._store.get(negotiation_id),
                    clock=self._clock,
                    offer_ttl=self._offer_ttl,
                )
                result = apply(machine)
                if save_if is None or save_if(result):
                    self._store.save(machine.negotiation)
                return result, machine

        result, machine = attempt()
        self._bus.publish_all(machine.pull_events())
        return Outcome(value=result, negotiation=machine.snapshot())

"""Shared pytest fixtures for the dealroom test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest

from dealroom.catalog import PropertyCatalog, PropertyRef
from dealroom.domain.models import Actor
from dealroom.domain.types import ActorRole
from dealroom.events import EventBus, NegotiationEvent
from dealroom.service import NegotiationService
from dealroom.state.schema import init_negotiation_table, init_property_table, open_database
from dealroom.state.store import NegotiationStore
from dealroom.state_machine import NegotiationStateMachine

FIXED_NOW = datetime(2026, 3, 2, 15, 30, tzinfo=UTC)

BUYER = "u-buyer"
SELLER = "u-seller"
BUYER_AGENT = "u-buyer-agent"
SELLER_AGENT = "u-seller-agent"
OUTSIDER = "u-outsider"


class FakeClock:
    """A settable clock; call it to read the time."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def machine(clock: FakeClock) -> NegotiationStateMachine:
    """A fresh active negotiation with all four seats filled."""
    sm = NegotiationStateMachine.create(
        "prop-1",
        buyer=BUYER,
        seller=SELLER,
        buyer_agent=BUYER_AGENT,
        seller_agent=SELLER_AGENT,
        clock=clock,
    )
    sm.pull_events()
    return sm


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory SQLite connection with negotiation and property tables."""
    connection = open_database(":memory:")
    init_negotiation_table(connection)
    init_property_table(connection)
    yield connection
    connection.close()


@pytest.fixture
def store(conn: sqlite3.Connection) -> NegotiationStore:
    return NegotiationStore(conn)


@pytest.fixture
def catalog(conn: sqlite3.Connection, store: NegotiationStore) -> PropertyCatalog:
    """Catalog with prop-1 (owned by the seller) and prop-2 (listing agent only)."""
    cat = PropertyCatalog(conn, lock=store.lock)
    cat.register(PropertyRef(id="prop-1", title="12 Elm St", owner_id=SELLER))
    cat.register(PropertyRef(id="prop-2", title="3 Oak Ave", listing_agent_id=SELLER_AGENT))
    return cat


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(bus: EventBus) -> list[NegotiationEvent]:
    """Every event published on ``bus``, in order."""
    events: list[NegotiationEvent] = []
    bus.subscribe(events.append)
    return events


@pytest.fixture
def service(
    store: NegotiationStore, catalog: PropertyCatalog, bus: EventBus, clock: FakeClock
) -> NegotiationService:
    return NegotiationService(store, catalog, bus, clock=clock, retry_attempts=3)


@pytest.fixture
def buyer() -> Actor:
    return Actor(id=BUYER)


@pytest.fixture
def seller() -> Actor:
    return Actor(id=SELLER)


@pytest.fixture
def outsider() -> Actor:
    return Actor(id=OUTSIDER)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="u-admin", role=ActorRole.ADMIN)

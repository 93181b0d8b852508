"""Tests for NegotiationEvent and EventBus."""

from __future__ import annotations

from datetime import UTC, datetime

from dealroom.events import EventBus, EventKind, NegotiationEvent


def _event(kind: EventKind = EventKind.OFFER_SUBMITTED) -> NegotiationEvent:
    return NegotiationEvent(
        kind=kind,
        negotiation_id="n-1",
        actor_id="u-buyer",
        timestamp=datetime(2026, 3, 2, 15, 30, tzinfo=UTC),
        payload={"offer": {"id": "o-1"}},
        property_id="prop-1",
        status="active",
    )


class TestNegotiationEvent:
    def test_room(self) -> None:
        assert _event().room == "negotiation-n-1"

    def test_to_dict(self) -> None:
        assert _event().to_dict() == {
            "event": "offer_submitted",
            "negotiation_id": "n-1",
            "actor_id": "u-buyer",
            "property_id": "prop-1",
            "status": "active",
            "timestamp": "2026-03-02T15:30:00+00:00",
            "payload": {"offer": {"id": "o-1"}},
        }


class TestEventBus:
    def test_delivers_in_subscription_order(self) -> None:
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(lambda e: seen.append("first"))
        bus.subscribe(lambda e: seen.append("second"))

        bus.publish(_event())

        assert seen == ["first", "second"]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen: list[NegotiationEvent] = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        bus.publish(_event())

        assert seen == []

    def test_failing_subscriber_does_not_stop_others(self) -> None:
        bus = EventBus()
        seen: list[NegotiationEvent] = []

        def broken(event: NegotiationEvent) -> None:
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(seen.append)

        bus.publish(_event())

        assert len(seen) == 1

    def test_publish_all(self) -> None:
        bus = EventBus()
        seen: list[NegotiationEvent] = []
        bus.subscribe(seen.append)

        bus.publish_all([_event(EventKind.OFFER_RESPONDED), _event(EventKind.MESSAGE_APPENDED)])

        assert [e.kind for e in seen] == [EventKind.OFFER_RESPONDED, EventKind.MESSAGE_APPENDED]

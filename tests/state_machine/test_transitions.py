"""Tests for the offer response transition table."""

from __future__ import annotations

import pytest

from dealroom.domain.types import (
    MessageType,
    NegotiationStatus,
    OfferStatus,
    ResponseAction,
    TimelineEventKind,
)
from dealroom.state_machine.transitions import RESPONDABLE_OFFER_STATUSES, RESPONSE_OUTCOMES


class TestResponseOutcomes:
    def test_every_action_has_an_outcome(self) -> None:
        assert set(RESPONSE_OUTCOMES) == set(ResponseAction)

    @pytest.mark.parametrize(
        ("action", "offer_status", "message_type", "timeline_event"),
        [
            (
                ResponseAction.ACCEPT,
                OfferStatus.ACCEPTED,
                MessageType.ACCEPTANCE,
                TimelineEventKind.OFFER_ACCEPTED,
            ),
            (
                ResponseAction.REJECT,
                OfferStatus.REJECTED,
                MessageType.REJECTION,
                TimelineEventKind.OFFER_REJECTED,
            ),
            (
                ResponseAction.COUNTER,
                OfferStatus.COUNTERED,
                MessageType.COUNTER_OFFER,
                TimelineEventKind.OFFER_COUNTERED,
            ),
        ],
    )
    def test_outcome_fields(
        self,
        action: ResponseAction,
        offer_status: OfferStatus,
        message_type: MessageType,
        timeline_event: TimelineEventKind,
    ) -> None:
        outcome = RESPONSE_OUTCOMES[action]
        assert outcome.offer_status == offer_status
        assert outcome.message_type == message_type
        assert outcome.timeline_event == timeline_event

    def test_only_accept_moves_the_negotiation(self) -> None:
        moved = {
            action: outcome.negotiation_status
            for action, outcome in RESPONSE_OUTCOMES.items()
            if outcome.negotiation_status is not None
        }
        assert moved == {ResponseAction.ACCEPT: NegotiationStatus.ACCEPTED}

    def test_templates_take_an_amount(self) -> None:
        for outcome in RESPONSE_OUTCOMES.values():
            assert "$1" in outcome.template.format(amount="$1")


def test_only_pending_offers_are_respondable() -> None:
    assert RESPONDABLE_OFFER_STATUSES == frozenset({OfferStatus.PENDING})

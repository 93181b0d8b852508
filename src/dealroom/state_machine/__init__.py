"""Negotiation aggregate with permission checks and response transitions."""

from dealroom.state_machine.machine import (
    DEFAULT_OFFER_TTL,
    NegotiationStateMachine,
    format_amount,
)
from dealroom.state_machine.transitions import (
    RESPONDABLE_OFFER_STATUSES,
    RESPONSE_OUTCOMES,
    ResponseOutcome,
)

__all__ = [
    "DEFAULT_OFFER_TTL",
    "RESPONDABLE_OFFER_STATUSES",
    "RESPONSE_OUTCOMES",
    "NegotiationStateMachine",
    "ResponseOutcome",
    "format_amount",
]

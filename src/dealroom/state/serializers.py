"""Serialization helpers for negotiation records.

Pydantic renders Decimal amounts as strings in JSON mode, so prices survive the
round-trip through storage without precision loss.  Offers, messages, and
timeline events are stored as ordered JSON arrays, which keeps their insertion
order intact on reload.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from dealroom.domain.models import Negotiation


def format_timestamp(value: datetime) -> str:
    """Render *value* as a fixed-width UTC string that sorts chronologically."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def serialize_negotiation(negotiation: Negotiation) -> str:
    """JSON-encode a negotiation record for the ``document_json`` column."""
    return negotiation.model_dump_json()


def deserialize_negotiation(json_str: str) -> Negotiation:
    """Rebuild a negotiation from ``serialize_negotiation`` output.

    Re-runs model validation, so a stored document whose counters disagree
    with its offer or message lists is rejected rather than loaded.
    """
    return Negotiation.model_validate_json(json_str)


def negotiation_to_dict(negotiation: Negotiation) -> dict[str, Any]:
    """Return a JSON-safe dict for API responses.

    Adds flat ``buyer``/``seller``/``buyer_agent``/``seller_agent`` keys next
    to the role mapping so clients do not need to know the role names.
    """
    data = negotiation.model_dump(mode="json")
    data["buyer"] = negotiation.buyer
    data["seller"] = negotiation.seller
    data["buyer_agent"] = negotiation.buyer_agent
    data["seller_agent"] = negotiation.seller_agent
    return data


def negotiation_summary(negotiation: Negotiation) -> dict[str, Any]:
    """Return the list-view shape of a negotiation (no message bodies)."""
    current = negotiation.find_offer(negotiation.current_offer) if negotiation.current_offer else None
    return {
        "id": negotiation.id,
        "property_id": negotiation.property_id,
        "status": negotiation.status.value,
        "buyer": negotiation.buyer,
        "seller": negotiation.seller,
        "buyer_agent": negotiation.buyer_agent,
        "seller_agent": negotiation.seller_agent,
        "current_offer": current.model_dump(mode="json") if current else None,
        "metadata": negotiation.metadata.model_dump(mode="json"),
    }

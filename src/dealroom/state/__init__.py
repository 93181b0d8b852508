"""Negotiation persistence package.

Provides SQLite-backed storage for negotiation documents and serialization
helpers for domain records.
"""

from dealroom.state.schema import init_negotiation_table, init_property_table, open_database
from dealroom.state.serializers import (
    deserialize_negotiation,
    negotiation_summary,
    negotiation_to_dict,
    serialize_negotiation,
)
from dealroom.state.store import NegotiationStore

__all__ = [
    "NegotiationStore",
    "deserialize_negotiation",
    "init_negotiation_table",
    "init_property_table",
    "negotiation_summary",
    "negotiation_to_dict",
    "open_database",
    "serialize_negotiation",
]

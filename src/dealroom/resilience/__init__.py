"""Retry infrastructure for negotiation writes."""

from dealroom.resilience.retry import is_retryable, retry_on_conflict

__all__ = [
    "is_retryable",
    "retry_on_conflict",
]

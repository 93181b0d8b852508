"""Retry decorator for negotiation writes that lose a race.

A write is retried when the store reports a version conflict or SQLite reports
the database as busy.  Each retry reloads the negotiation and re-applies the
operation, so permission and state checks run again against fresh data.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from dealroom.domain.errors import ConcurrentModificationError

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def is_retryable(exc: BaseException) -> bool:
    """Return True for version conflicts and SQLite lock contention."""
    if isinstance(exc, ConcurrentModificationError):
        return True
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt."""
    operation = getattr(retry_state.fn, "_operation", "unknown") if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying_negotiation_write",
        operation=operation,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        exception=str(exception),
    )


def _log_final_failure(retry_state: RetryCallState) -> Any:
    """Log exhaustion, then re-raise the last exception."""
    operation = getattr(retry_state.fn, "_operation", "unknown") if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.error(
        "negotiation_write_failed_after_retries",
        operation=operation,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )
    if retry_state.outcome is not None:
        return retry_state.outcome.result()
    return None


def retry_on_conflict(operation: str, attempts: int = 3) -> Callable[[F], F]:
    """Create a retry decorator for a read-modify-write on one negotiation.

    Returns a tenacity retry decorator configured with:
    - *attempts* tries at most
    - short exponential backoff with jitter
    - a warning log before each retry
    - an error log and the original exception re-raised on exhaustion

    Non-retryable exceptions (permission, validation, ...) propagate on the
    first attempt.

    Args:
        operation: Name used in logs.
        attempts: Maximum number of tries, including the first.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        func._operation = operation  # type: ignore[attr-defined]

        wrapped = retry(
            stop=stop_after_attempt(max(attempts, 1)),
            wait=wait_exponential_jitter(initial=0.01, max=0.5, jitter=0.05),
            retry=retry_if_exception(is_retryable),
            before_sleep=_before_sleep_log,
            retry_error_callback=_log_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator

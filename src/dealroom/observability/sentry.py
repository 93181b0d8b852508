"""Error reporting through Sentry, fed by structlog.

``init_sentry`` starts the SDK (and does nothing without a DSN);
``get_sentry_processor`` returns the structlog processor that forwards
ERROR-level events, so failures logged anywhere in the service reach Sentry
with their bound context (request id, negotiation id, actor).
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from pydantic import SecretStr
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(
    dsn: str | SecretStr,
    *,
    environment: str = "development",
    traces_sample_rate: float = 0.1,
) -> bool:
    """Initialize the Sentry SDK.

    Safe to call unconditionally at startup.

    Args:
        dsn: Sentry DSN, plain or wrapped in ``SecretStr``.  Empty disables Sentry.
        environment: Reported environment name.
        traces_sample_rate: Fraction of requests traced.

    Returns:
        ``True`` if the SDK was initialized.
    """
    raw = dsn.get_secret_value() if isinstance(dsn, SecretStr) else dsn
    if not raw:
        return False

    sentry_sdk.init(
        dsn=raw,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        integrations=[
            # structlog-sentry does the capturing; stdlib logging capture would double-report
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a processor that sends ERROR events to Sentry.

    Place it after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)

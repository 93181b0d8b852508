"""Prometheus metrics instrumentation for the negotiation service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus business metrics.
- ``OPEN_NEGOTIATIONS``: Gauge of negotiations in ``active`` or ``pending-acceptance``.
- ``OFFERS_SUBMITTED``: Counter of offers appended, counters included.
- ``OFFER_RESPONSES``: Counter of seller-side responses, labelled by action.
- ``DEALS_CLOSED``: Counter of negotiations reaching ``accepted``.

Business metrics are updated from negotiation events (not by polling the
database); the gauge is seeded once at startup with :func:`seed_open_negotiations`.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

from dealroom.domain.types import TERMINAL_STATUSES, NegotiationStatus
from dealroom.events import EventKind, NegotiationEvent

OPEN_NEGOTIATIONS: Gauge = Gauge(
    "dealroom_open_negotiations",
    "Number of negotiations that are active or pending acceptance",
)

OFFERS_SUBMITTED: Counter = Counter(
    "dealroom_offers_submitted_total",
    "Total number of offers appended to negotiations, counter offers included",
)

OFFER_RESPONSES: Counter = Counter(
    "dealroom_offer_responses_total",
    "Total number of seller-side responses to offers",
    ["action"],
)

DEALS_CLOSED: Counter = Counter(
    "dealroom_deals_closed_total",
    "Total number of negotiations reaching ACCEPTED state",
)


def seed_open_negotiations(count: int) -> None:
    """Set the open-negotiation gauge from a database count."""
    OPEN_NEGOTIATIONS.set(count)


def record_event_metrics(event: NegotiationEvent) -> None:
    """Event-bus subscriber that keeps the business metrics current."""
    if event.kind == EventKind.NEGOTIATION_CREATED:
        OPEN_NEGOTIATIONS.inc()
    elif event.kind == EventKind.OFFER_SUBMITTED:
        OFFERS_SUBMITTED.inc()
    elif event.kind == EventKind.OFFER_RESPONDED:
        action = str(event.payload.get("action", "unknown"))
        OFFER_RESPONSES.labels(action=action).inc()
        if event.payload.get("counter_offer"):
            OFFERS_SUBMITTED.inc()
        if event.status == NegotiationStatus.ACCEPTED:
            DEALS_CLOSED.inc()
            OPEN_NEGOTIATIONS.dec()
    elif event.kind == EventKind.STATUS_CHANGED:
        to_status = event.payload.get("to_status")
        if to_status in TERMINAL_STATUSES:
            OPEN_NEGOTIATIONS.dec()
            if to_status == NegotiationStatus.ACCEPTED:
                DEALS_CLOSED.inc()


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Health, readiness, and metrics endpoints are excluded from instrumentation.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)

"""Application entry point: the FastAPI negotiation service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development),
  forwarding ERROR events to Sentry when a DSN is set
- **SQLite** negotiation store and property catalog
- **Event bus** feeding the audit trail, business metrics, and WebSocket rooms
- **HTTP routes**, health probes, request IDs, and ``/metrics``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from dealroom.api import register_error_handlers
from dealroom.api import router as negotiations_router
from dealroom.audit.logger import AuditLogger
from dealroom.audit.store import close_audit_db, init_audit_db
from dealroom.audit.wiring import wire_audit_to_event_bus
from dealroom.catalog import PropertyCatalog
from dealroom.config import Settings, get_settings, validate_settings
from dealroom.events import EventBus
from dealroom.health import register_health_routes
from dealroom.observability.metrics import (
    record_event_metrics,
    seed_open_negotiations,
    setup_metrics,
)
from dealroom.observability.middleware import RequestIdMiddleware
from dealroom.observability.sentry import get_sentry_processor, init_sentry
from dealroom.realtime import RoomHub
from dealroom.realtime import router as realtime_router
from dealroom.service import NegotiationService
from dealroom.state.schema import init_negotiation_table, init_property_table, open_database
from dealroom.state.store import NegotiationStore

logger = structlog.get_logger()


def configure_logging(production: bool = False, service_name: str = "dealroom") -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode: JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.
    In both modes ERROR events also go to Sentry (a no-op until
    :func:`init_sentry` has run with a DSN).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        get_sentry_processor(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)


def _prepare_path(path: Path) -> None:
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the negotiation and audit databases, builds the store, catalog,
    event bus, and service, and subscribes the audit trail, metrics, and
    WebSocket hub to the bus.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. Negotiation database: negotiations plus the property catalog
    _prepare_path(settings.database_path)
    db_conn = open_database(settings.database_path)
    init_negotiation_table(db_conn)
    init_property_table(db_conn)
    services["db_conn"] = db_conn

    store = NegotiationStore(db_conn)
    catalog = PropertyCatalog(db_conn, lock=store.lock)
    services["store"] = store
    services["catalog"] = catalog

    # b. Audit trail
    _prepare_path(settings.audit_db_path)
    audit_conn = init_audit_db(settings.audit_db_path)
    audit_logger = AuditLogger(audit_conn)
    services["audit_conn"] = audit_conn
    services["audit_logger"] = audit_logger

    # c. Event bus and its subscribers
    bus = EventBus()
    wire_audit_to_event_bus(bus, audit_logger)
    bus.subscribe(record_event_metrics)
    room_hub = RoomHub()
    bus.subscribe(room_hub.handle_event)
    services["event_bus"] = bus
    services["room_hub"] = room_hub

    seed_open_negotiations(store.count_open())

    # d. Negotiation service
    services["negotiation_service"] = NegotiationService(
        store,
        catalog,
        bus,
        offer_ttl=settings.offer_ttl,
        retry_attempts=settings.save_retry_attempts,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )

    logger.info(
        "services_initialized",
        database=str(settings.database_path),
        audit_db=str(settings.audit_db_path),
    )
    return services


def close_services(services: dict[str, Any]) -> None:
    """Close both database connections.  Safe to call twice."""
    db_conn = services.pop("db_conn", None)
    if db_conn is not None:
        db_conn.close()
        logger.info("Negotiation database connection closed")
    audit_conn = services.pop("audit_conn", None)
    if audit_conn is not None:
        close_audit_db(audit_conn)
        logger.info("Audit database connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Bind the WebSocket hub to the serving loop; close databases on shutdown."""
    services = app.state.services
    room_hub = services.get("room_hub")
    if room_hub is not None:
        room_hub.bind_loop(asyncio.get_running_loop())
    logger.info("FastAPI application starting")
    yield
    close_services(services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with routes, probes, middleware, and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    settings: Settings = services.get("_settings") or get_settings()

    fastapi_app = FastAPI(title="Dealroom Negotiations", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = settings

    fastapi_app.add_middleware(RequestIdMiddleware, service_name=settings.service_name)
    register_error_handlers(fastapi_app)
    fastapi_app.include_router(negotiations_router)
    fastapi_app.include_router(realtime_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)

    return fastapi_app


async def main() -> None:
    """Main entry point: configure, initialize, and serve with uvicorn."""
    settings = get_settings()
    environment = "production" if settings.production else "development"
    init_sentry(settings.sentry_dsn, environment=environment)
    configure_logging(production=settings.production, service_name=settings.service_name)
    logger.info("Application starting")

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host=settings.host,
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)

    try:
        await server.serve()
    finally:
        close_services(services)


def run() -> None:
    """Console-script wrapper around :func:`main`."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

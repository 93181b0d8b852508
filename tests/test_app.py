"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import inspect
from pathlib import Path

import structlog
from fastapi import FastAPI
from structlog_sentry import SentryProcessor

from dealroom.app import close_services, configure_logging, create_app, initialize_services
from dealroom.config import Settings
from dealroom.events import EventBus
from dealroom.service import NegotiationService


def _reset_structlog() -> None:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()


def _base_settings(tmp_path: Path, **overrides) -> Settings:
    """Build a Settings instance with both databases under tmp_path."""
    defaults = {
        "database_path": tmp_path / "dealroom.db",
        "audit_db_path": tmp_path / "audit.db",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)  # type: ignore[call-arg]


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)

    def test_production_mode_uses_json_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)

    def test_default_is_development_mode(self) -> None:
        _reset_structlog()
        configure_logging()
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)

    def test_sentry_processor_precedes_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        kinds = [type(p) for p in processors]
        assert kinds.index(SentryProcessor) < kinds.index(structlog.processors.JSONRenderer)

    def test_binds_service_name(self) -> None:
        _reset_structlog()
        configure_logging(service_name="dealroom-test")
        assert structlog.contextvars.get_contextvars()["service"] == "dealroom-test"
        structlog.contextvars.clear_contextvars()


class TestInitializeServices:
    """Tests for service initialization."""

    def test_creates_databases(self, tmp_path: Path) -> None:
        _reset_structlog()
        settings = _base_settings(
            tmp_path,
            database_path=tmp_path / "nested" / "dealroom.db",
            audit_db_path=tmp_path / "logs" / "audit.db",
        )

        services = initialize_services(settings)

        assert (tmp_path / "nested" / "dealroom.db").exists()
        assert (tmp_path / "logs" / "audit.db").exists()
        assert services["audit_logger"] is not None
        close_services(services)

    def test_service_wired_to_bus(self, tmp_path: Path) -> None:
        _reset_structlog()
        services = initialize_services(_base_settings(tmp_path, save_retry_attempts=5))

        service = services["negotiation_service"]
        assert isinstance(service, NegotiationService)
        assert isinstance(services["event_bus"], EventBus)
        assert service.bus is services["event_bus"]
        close_services(services)

    def test_catalog_shares_store_lock(self, tmp_path: Path) -> None:
        _reset_structlog()
        services = initialize_services(_base_settings(tmp_path))

        assert services["catalog"].lock is services["store"].lock
        close_services(services)

    def test_in_memory_databases(self, tmp_path: Path) -> None:
        _reset_structlog()
        services = initialize_services(
            _base_settings(tmp_path, database_path=":memory:", audit_db_path=":memory:")
        )
        assert services["db_conn"].execute("SELECT 1").fetchone() == (1,)
        close_services(services)

    def test_close_services_twice(self, tmp_path: Path) -> None:
        _reset_structlog()
        services = initialize_services(_base_settings(tmp_path))
        close_services(services)
        close_services(services)
        assert "db_conn" not in services
        assert "audit_conn" not in services


class TestCreateApp:
    """Tests for FastAPI app creation."""

    def test_returns_fastapi_instance(self, tmp_path: Path) -> None:
        _reset_structlog()
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        assert isinstance(app, FastAPI)
        assert app.router.lifespan_context is not None
        close_services(services)

    def test_no_deprecated_on_event(self) -> None:
        """Verify deprecated on_event pattern is not used in create_app."""
        source = inspect.getsource(create_app)
        assert "on_event" not in source

    def test_routes_registered(self, tmp_path: Path) -> None:
        _reset_structlog()
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        route_paths = {route.path for route in app.routes}
        assert {
            "/api/negotiations",
            "/api/negotiations/{negotiation_id}",
            "/api/negotiations/{negotiation_id}/offers/{offer_id}/respond",
            "/ws/negotiations/{negotiation_id}",
            "/health",
            "/ready",
            "/metrics",
        } <= route_paths
        close_services(services)

    def test_settings_stored_on_app_state(self, tmp_path: Path) -> None:
        _reset_structlog()
        settings = _base_settings(tmp_path)
        services = initialize_services(settings)
        app = create_app(services)

        assert app.state.settings is settings
        assert app.state.services is services
        close_services(services)


class TestMainImport:
    """Test that main() can be imported without side effects."""

    def test_main_importable(self) -> None:
        from dealroom.app import main, run

        assert callable(main)
        assert callable(run)

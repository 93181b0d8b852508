"""Fixtures for HTTP and WebSocket tests: a fully wired app on temp databases."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog
from fastapi.testclient import TestClient

from dealroom.app import create_app, initialize_services
from dealroom.catalog import PropertyRef
from dealroom.config import Settings


@pytest.fixture
def services(tmp_path: Path) -> dict[str, Any]:
    structlog.reset_defaults()
    settings = Settings(
        _env_file=None,  # type: ignore[call-arg]
        database_path=tmp_path / "dealroom.db",
        audit_db_path=tmp_path / "audit.db",
    )
    services = initialize_services(settings)
    services["catalog"].register(PropertyRef(id="prop-1", title="12 Elm St", owner_id="u-seller"))
    return services


@pytest.fixture
def client(services: dict[str, Any]) -> Iterator[TestClient]:
    with TestClient(create_app(services)) as test_client:
        yield test_client

"""Tests for the property catalog."""

from __future__ import annotations

import sqlite3
import threading

import pytest
from pydantic import ValidationError

from dealroom.catalog import PropertyCatalog, PropertyRef
from dealroom.state.store import NegotiationStore


class TestPropertyRef:
    def test_owner_is_default_seller(self) -> None:
        prop = PropertyRef(id="p", owner_id="u-owner", listing_agent_id="u-agent")
        assert prop.default_seller == "u-owner"

    def test_listing_agent_fallback(self) -> None:
        assert PropertyRef(id="p", listing_agent_id="u-agent").default_seller == "u-agent"

    def test_no_seller(self) -> None:
        assert PropertyRef(id="p").default_seller is None

    def test_blank_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PropertyRef(id="  ")


class TestPropertyCatalog:
    def test_get(self, catalog: PropertyCatalog) -> None:
        prop = catalog.get("prop-1")
        assert prop is not None
        assert prop.title == "12 Elm St"
        assert prop.owner_id == "u-seller"

    def test_unknown(self, catalog: PropertyCatalog) -> None:
        assert catalog.get("nowhere") is None

    def test_register_updates(self, catalog: PropertyCatalog) -> None:
        catalog.register(PropertyRef(id="prop-1", title="12 Elm Street", owner_id="u-new"))
        prop = catalog.get("prop-1")
        assert prop is not None
        assert prop.title == "12 Elm Street"
        assert prop.owner_id == "u-new"

    def test_list_all_sorted(self, catalog: PropertyCatalog) -> None:
        catalog.register(PropertyRef(id="prop-0"))
        assert [p.id for p in catalog.list_all()] == ["prop-0", "prop-1", "prop-2"]

    def test_shares_store_lock(self, catalog: PropertyCatalog, store: NegotiationStore) -> None:
        assert catalog.lock is store.lock

    def test_own_lock_by_default(self, conn: sqlite3.Connection, store: NegotiationStore) -> None:
        assert PropertyCatalog(conn).lock is not store.lock

    def test_register_waits_for_store_lock(
        self, catalog: PropertyCatalog, store: NegotiationStore
    ) -> None:
        registered = threading.Event()

        def register() -> None:
            catalog.register(PropertyRef(id="prop-9"))
            registered.set()

        with store.lock:
            worker = threading.Thread(target=register)
            worker.start()
            # blocked while the store holds the connection
            assert not registered.wait(0.2)

        worker.join(timeout=5)
        assert registered.is_set()
        assert catalog.get("prop-9") is not None

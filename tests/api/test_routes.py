"""Tests for the /api/negotiations HTTP routes."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from dealroom.app import create_app
from dealroom.audit.store import query_audit_trail
from dealroom.catalog import PropertyRef

BUYER = {"X-User-Id": "u-buyer"}
SELLER = {"X-User-Id": "u-seller"}
OUTSIDER = {"X-User-Id": "u-outsider"}
ADMIN = {"X-User-Id": "u-admin", "X-User-Role": "admin"}


def _create(client: TestClient, **body: Any) -> dict[str, Any]:
    resp = client.post("/api/negotiations", json={"property_id": "prop-1", **body}, headers=BUYER)
    assert resp.status_code == 201, resp.text
    return resp.json()["negotiation"]


def _offer(client: TestClient, negotiation_id: str, amount: int = 400000) -> dict[str, Any]:
    resp = client.post(
        f"/api/negotiations/{negotiation_id}/offers", json={"amount": amount}, headers=BUYER
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["offer"]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuthentication:
    def test_missing_identity_is_401(self, client: TestClient) -> None:
        resp = client.get("/api/negotiations")
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "message": "Authentication required",
            "error": "unauthorized",
        }

    def test_blank_identity_is_401(self, client: TestClient) -> None:
        resp = client.get("/api/negotiations", headers={"X-User-Id": "  "})
        assert resp.status_code == 401

    def test_unknown_role_is_401(self, client: TestClient) -> None:
        resp = client.get("/api/negotiations", headers={"X-User-Id": "u-x", "X-User-Role": "root"})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


class TestCreateAndRead:
    def test_create(self, client: TestClient) -> None:
        resp = client.post("/api/negotiations", json={"property_id": "prop-1"}, headers=BUYER)

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Negotiation created successfully"
        negotiation = body["negotiation"]
        assert negotiation["buyer"] == "u-buyer"
        assert negotiation["seller"] == "u-seller"
        assert negotiation["status"] == "active"
        assert negotiation["timeline"][0]["event"] == "negotiation-started"

    def test_duplicate_is_409_with_existing_id(self, client: TestClient) -> None:
        first = _create(client)

        resp = client.post("/api/negotiations", json={"property_id": "prop-1"}, headers=BUYER)

        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "duplicate_negotiation"
        assert body["negotiation_id"] == first["id"]

    def test_unknown_property_is_404(self, client: TestClient) -> None:
        resp = client.post("/api/negotiations", json={"property_id": "nowhere"}, headers=BUYER)
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_unexpected_field_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/negotiations", json={"property_id": "prop-1", "price": 1}, headers=BUYER
        )
        assert resp.status_code == 422
        assert resp.json()["message"] == "Invalid request"

    def test_get_as_participant_and_admin(self, client: TestClient) -> None:
        negotiation = _create(client)
        for who in (BUYER, SELLER, ADMIN):
            resp = client.get(f"/api/negotiations/{negotiation['id']}", headers=who)
            assert resp.status_code == 200
            assert resp.json()["negotiation"]["id"] == negotiation["id"]

    def test_get_as_outsider_is_403(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.get(f"/api/negotiations/{negotiation['id']}", headers=OUTSIDER)
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    def test_get_unknown_is_404(self, client: TestClient) -> None:
        assert client.get("/api/negotiations/missing", headers=BUYER).status_code == 404


class TestList:
    def test_lists_with_pagination(self, client: TestClient, services) -> None:
        for n in range(3):
            services["catalog"].register(PropertyRef(id=f"lot-{n}", owner_id="u-seller"))
            client.post("/api/negotiations", json={"property_id": f"lot-{n}"}, headers=BUYER)

        resp = client.get("/api/negotiations?page=1&limit=2", headers=SELLER)

        body = resp.json()
        assert resp.status_code == 200
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert len(body["negotiations"]) == 2
        assert "messages" not in body["negotiations"][0]

    def test_status_filter(self, client: TestClient) -> None:
        _create(client)
        resp = client.get("/api/negotiations?status=accepted", headers=BUYER)
        assert resp.json()["pagination"]["total"] == 0

    def test_bad_status_is_422(self, client: TestClient) -> None:
        resp = client.get("/api/negotiations?status=archived", headers=BUYER)
        assert resp.status_code == 422

    def test_page_zero_is_422(self, client: TestClient) -> None:
        assert client.get("/api/negotiations?page=0", headers=BUYER).status_code == 422

    def test_huge_page_is_422(self, client: TestClient) -> None:
        resp = client.get("/api/negotiations", params={"page": 10**19}, headers=BUYER)

        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


class TestOffers:
    def test_submit(self, client: TestClient) -> None:
        negotiation = _create(client)

        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers",
            json={
                "amount": 400000,
                "terms": {"financing_type": "conventional", "inspection_period": 10},
            },
            headers=BUYER,
        )

        body = resp.json()
        assert resp.status_code == 200
        assert body["message"] == "Offer submitted successfully"
        assert body["offer"]["status"] == "pending"
        assert body["offer"]["amount"] == "400000"
        assert body["negotiation"]["current_offer"] == body["offer"]["id"]
        assert body["negotiation"]["metadata"]["total_offers"] == 1

    def test_seller_cannot_submit(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers", json={"amount": 1}, headers=SELLER
        )
        assert resp.status_code == 403

    def test_invalid_offer_is_422_with_errors(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers",
            json={"amount": -5},
            headers=BUYER,
        )
        body = resp.json()
        assert resp.status_code == 422
        assert body["error"] == "validation_error"
        assert body["errors"]

    @pytest.mark.parametrize(
        ("action", "message", "status"),
        [
            ("accept", "Offer accepted successfully", "accepted"),
            ("reject", "Offer rejected successfully", "active"),
        ],
    )
    def test_respond(self, client: TestClient, action: str, message: str, status: str) -> None:
        negotiation = _create(client)
        offer = _offer(client, negotiation["id"])

        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers/{offer['id']}/respond",
            json={"action": action},
            headers=SELLER,
        )

        body = resp.json()
        assert resp.status_code == 200
        assert body["message"] == message
        assert body["negotiation"]["status"] == status

    def test_counter(self, client: TestClient) -> None:
        negotiation = _create(client)
        offer = _offer(client, negotiation["id"])

        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers/{offer['id']}/respond",
            json={"action": "counter", "counter_offer": {"amount": 425000}},
            headers=SELLER,
        )

        body = resp.json()
        assert body["message"] == "Offer countered successfully"
        assert body["offer"]["status"] == "countered"
        offers = body["negotiation"]["offers"]
        assert [o["status"] for o in offers] == ["countered", "pending"]
        assert body["negotiation"]["messages"][-1]["message"] == (
            "Counter offer of $425,000 has been made."
        )

    def test_unknown_action_is_400(self, client: TestClient) -> None:
        negotiation = _create(client)
        offer = _offer(client, negotiation["id"])
        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers/{offer['id']}/respond",
            json={"action": "maybe"},
            headers=SELLER,
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_action"

    def test_unknown_offer_is_404(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers/o-404/respond",
            json={"action": "accept"},
            headers=SELLER,
        )
        assert resp.status_code == 404

    def test_closed_negotiation_is_409(self, client: TestClient) -> None:
        negotiation = _create(client)
        offer = _offer(client, negotiation["id"])
        client.post(
            f"/api/negotiations/{negotiation['id']}/offers/{offer['id']}/respond",
            json={"action": "accept"},
            headers=SELLER,
        )

        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers", json={"amount": 1}, headers=BUYER
        )

        assert resp.status_code == 409
        assert resp.json()["error"] == "negotiation_closed"

    def test_withdraw(self, client: TestClient) -> None:
        negotiation = _create(client)
        offer = _offer(client, negotiation["id"])

        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/offers/{offer['id']}/withdraw",
            headers=BUYER,
        )

        assert resp.status_code == 200
        assert resp.json()["message"] == "Offer withdrawn successfully"
        assert resp.json()["offer"]["status"] == "withdrawn"


# ---------------------------------------------------------------------------
# Messages and status
# ---------------------------------------------------------------------------


class TestMessages:
    def test_send_and_mark_read(self, client: TestClient) -> None:
        negotiation = _create(client)

        sent = client.post(
            f"/api/negotiations/{negotiation['id']}/messages",
            json={"recipient": "u-buyer", "message": "  Happy to talk  "},
            headers=SELLER,
        )
        assert sent.status_code == 200
        assert sent.json()["message"] == "Message sent successfully"
        assert sent.json()["data"]["message"] == "Happy to talk"

        read = client.post(f"/api/negotiations/{negotiation['id']}/messages/read", headers=BUYER)
        assert read.json() == {
            "success": True,
            "message": "1 message(s) marked as read",
            "marked": 1,
        }

    def test_empty_message_is_422(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/messages",
            json={"recipient": "u-seller", "message": "   "},
            headers=BUYER,
        )
        assert resp.status_code == 422

    def test_outsider_cannot_message(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.post(
            f"/api/negotiations/{negotiation['id']}/messages",
            json={"recipient": "u-seller", "message": "hi"},
            headers=OUTSIDER,
        )
        assert resp.status_code == 403


class TestStatus:
    def test_update(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.patch(
            f"/api/negotiations/{negotiation['id']}/status",
            json={"status": "pending-acceptance"},
            headers=SELLER,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "pending-acceptance"

    def test_invalid_status_is_422(self, client: TestClient) -> None:
        negotiation = _create(client)
        resp = client.patch(
            f"/api/negotiations/{negotiation['id']}/status",
            json={"status": "archived"},
            headers=SELLER,
        )
        assert resp.status_code == 422

    def test_terminal_is_409(self, client: TestClient) -> None:
        negotiation = _create(client)
        url = f"/api/negotiations/{negotiation['id']}/status"
        client.patch(url, json={"status": "cancelled"}, headers=BUYER)
        resp = client.patch(url, json={"status": "active"}, headers=BUYER)
        assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Cross-cutting
# ---------------------------------------------------------------------------


class TestAuditAndErrors:
    def test_mutations_reach_audit_trail(self, client: TestClient, services) -> None:
        negotiation = _create(client)
        _offer(client, negotiation["id"])

        rows = query_audit_trail(services["audit_conn"], negotiation_id=negotiation["id"])

        assert {r["event_type"] for r in rows} == {"negotiation_created", "offer_submitted"}

    def test_unexpected_error_is_500_and_audited(self, services, monkeypatch) -> None:
        def explode(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(services["negotiation_service"], "get_negotiation", explode)
        with TestClient(create_app(services), raise_server_exceptions=False) as client:
            resp = client.get("/api/negotiations/n-1", headers=BUYER)

            assert resp.status_code == 500
            assert resp.json() == {
                "success": False,
                "message": "Internal server error",
                "error": "internal_error",
            }
            [row] = query_audit_trail(services["audit_conn"], event_type="error")
            assert row["negotiation_id"] == "n-1"
            assert row["metadata"]["error_message"] == "disk on fire"

    def test_request_id_header(self, client: TestClient) -> None:
        resp = client.get("/api/negotiations", headers={**BUYER, "X-Request-ID": "abc"})
        assert resp.headers["X-Request-ID"] == "abc"

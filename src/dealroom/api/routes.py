"""HTTP routes for negotiations under ``/api/negotiations``.

Handlers are plain ``def`` functions: the service does blocking SQLite work,
so FastAPI runs them in its threadpool.  Domain exceptions propagate to the
handlers in :mod:`dealroom.api.errors`.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from dealroom.api.deps import CurrentActor, Service
from dealroom.domain.types import MessageType
from dealroom.state.serializers import negotiation_summary, negotiation_to_dict

router = APIRouter(prefix="/api/negotiations", tags=["negotiations"])

RESPONSE_VERBS = {"accept": "accepted", "reject": "rejected", "counter": "countered"}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CreateNegotiationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    property_id: str = Field(min_length=1)
    seller: str | None = None
    buyer_agent: str | None = None
    seller_agent: str | None = None


class MessageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recipient: str
    message: str
    type: MessageType = MessageType.MESSAGE
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    related_offer: str | None = None


class MarkReadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message_ids: list[str] | None = None


class RespondRequest(BaseModel):
    """Answer to an offer.  ``action`` stays a plain string so unknown values
    surface as an invalid action rather than a schema error."""

    model_config = ConfigDict(extra="forbid")

    action: str
    counter_offer: dict[str, Any] | None = None


class StatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get("")
def list_negotiations(
    actor: CurrentActor,
    service: Service,
    status: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> dict[str, Any]:
    """Negotiations the caller takes part in, most recent activity first."""
    result = service.list_negotiations(actor, status=status, page=page, limit=limit)
    return {
        "success": True,
        "negotiations": [negotiation_summary(n) for n in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "pages": result.pages,
        },
    }


@router.get("/{negotiation_id}")
def get_negotiation(negotiation_id: str, actor: CurrentActor, service: Service) -> dict[str, Any]:
    negotiation = service.get_negotiation(actor, negotiation_id)
    return {"success": True, "negotiation": negotiation_to_dict(negotiation)}


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
def create_negotiation(
    body: CreateNegotiationRequest, actor: CurrentActor, service: Service
) -> dict[str, Any]:
    negotiation = service.create_negotiation(
        actor,
        body.property_id,
        seller=body.seller,
        buyer_agent=body.buyer_agent,
        seller_agent=body.seller_agent,
    )
    return {
        "success": True,
        "message": "Negotiation created successfully",
        "negotiation": negotiation_to_dict(negotiation),
    }


@router.post("/{negotiation_id}/messages")
def add_message(
    negotiation_id: str, body: MessageRequest, actor: CurrentActor, service: Service
) -> dict[str, Any]:
    outcome = service.add_message(
        actor,
        negotiation_id,
        body.recipient,
        body.message,
        body.type,
        body.attachments,
        body.related_offer,
    )
    return {
        "success": True,
        "message": "Message sent successfully",
        "data": outcome.value.model_dump(mode="json"),
    }


@router.post("/{negotiation_id}/messages/read")
def mark_messages_read(
    negotiation_id: str,
    actor: CurrentActor,
    service: Service,
    body: MarkReadRequest | None = None,
) -> dict[str, Any]:
    message_ids = body.message_ids if body is not None else None
    outcome = service.mark_read(actor, negotiation_id, message_ids)
    return {
        "success": True,
        "message": f"{outcome.value} message(s) marked as read",
        "marked": outcome.value,
    }


@router.post("/{negotiation_id}/offers")
def submit_offer(
    negotiation_id: str,
    body: dict[str, Any],
    actor: CurrentActor,
    service: Service,
) -> dict[str, Any]:
    """Submit an offer; the body is validated as an ``OfferSubmission``."""
    outcome = service.submit_offer(actor, negotiation_id, body)
    return {
        "success": True,
        "message": "Offer submitted successfully",
        "offer": outcome.value.model_dump(mode="json"),
        "negotiation": negotiation_to_dict(outcome.negotiation),
    }


@router.post("/{negotiation_id}/offers/{offer_id}/respond")
def respond_to_offer(
    negotiation_id: str,
    offer_id: str,
    body: RespondRequest,
    actor: CurrentActor,
    service: Service,
) -> dict[str, Any]:
    outcome = service.respond_to_offer(
        actor, negotiation_id, offer_id, body.action, body.counter_offer
    )
    verb = RESPONSE_VERBS.get(body.action, body.action)
    return {
        "success": True,
        "message": f"Offer {verb} successfully",
        "offer": outcome.value.model_dump(mode="json"),
        "negotiation": negotiation_to_dict(outcome.negotiation),
    }


@router.post("/{negotiation_id}/offers/{offer_id}/withdraw")
def withdraw_offer(
    negotiation_id: str, offer_id: str, actor: CurrentActor, service: Service
) -> dict[str, Any]:
    outcome = service.withdraw_offer(actor, negotiation_id, offer_id)
    return {
        "success": True,
        "message": "Offer withdrawn successfully",
        "offer": outcome.value.model_dump(mode="json"),
    }


@router.patch("/{negotiation_id}/status")
def update_status(
    negotiation_id: str, body: StatusRequest, actor: CurrentActor, service: Service
) -> dict[str, Any]:
    outcome = service.set_status(actor, negotiation_id, body.status)
    return {
        "success": True,
        "message": "Negotiation status updated successfully",
        "status": outcome.value.value,
    }

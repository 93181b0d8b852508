"""Request dependencies: the calling actor and the shared service.

Authentication happens upstream; this service trusts the ``X-User-Id`` and
``X-User-Role`` headers it is given and only refuses requests without them.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request
from pydantic import ValidationError

from dealroom.domain.models import Actor
from dealroom.service import NegotiationService


def actor_from_headers(user_id: str | None, role: str | None) -> Actor | None:
    """Build an :class:`Actor` from raw header values, or ``None`` if unusable."""
    if not user_id or not user_id.strip():
        return None
    try:
        return Actor(id=user_id.strip(), role=(role or "user").strip().lower())
    except ValidationError:
        return None


def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Resolve the caller.

    Raises:
        HTTPException: 401 if the identity headers are missing or invalid.
    """
    actor = actor_from_headers(x_user_id, x_user_role)
    if actor is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return actor


def get_service(request: Request) -> NegotiationService:
    return request.app.state.services["negotiation_service"]


CurrentActor = Annotated[Actor, Depends(get_actor)]
Service = Annotated[NegotiationService, Depends(get_service)]

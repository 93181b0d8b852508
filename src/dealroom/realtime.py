"""Real-time fan-out of negotiation events over WebSockets.

Clients connect to ``/ws/negotiations/{negotiation_id}`` and join the room
``negotiation-<id>``.  :class:`RoomHub` subscribes to the event bus; events are
published from worker threads (the HTTP handlers run in FastAPI's threadpool),
so the hub hands each broadcast to the server's event loop.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from dealroom.api.deps import actor_from_headers
from dealroom.domain.errors import ForbiddenError, NotFoundError
from dealroom.events import NegotiationEvent

logger = structlog.get_logger()

router = APIRouter()


def room_name(negotiation_id: str) -> str:
    return f"negotiation-{negotiation_id}"


class RoomHub:
    """WebSocket connections grouped by room."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the loop that owns the sockets; broadcasts are scheduled on it."""
        self._loop = loop

    def connection_count(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def join(self, room: str, websocket: WebSocket) -> None:
        self._rooms[room].add(websocket)
        logger.debug("websocket_joined", room=room, connections=len(self._rooms[room]))

    async def leave(self, room: str, websocket: WebSocket) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._rooms[room]
        logger.debug("websocket_left", room=room)

    async def broadcast(self, room: str, data: dict[str, Any]) -> int:
        """Send *data* to every socket in *room*; drop sockets that fail.

        Returns:
            How many sockets received the message.
        """
        delivered = 0
        for websocket in list(self._rooms.get(room, ())):
            try:
                await websocket.send_json(data)
                delivered += 1
            except Exception:
                logger.warning("websocket_send_failed", room=room, exc_info=True)
                await self.leave(room, websocket)
        return delivered

    def handle_event(self, event: NegotiationEvent) -> None:
        """Event-bus subscriber.  Callable from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(event.room, event.to_dict()), loop)


@router.websocket("/ws/negotiations/{negotiation_id}")
async def negotiation_socket(websocket: WebSocket, negotiation_id: str) -> None:
    """Stream events for one negotiation to a participant.

    Identity comes from the ``X-User-Id``/``X-User-Role`` headers or, for
    browsers that cannot set headers, the ``user_id``/``role`` query
    parameters.  Unknown negotiations and non-participants are refused with
    close code 1008.
    """
    services: dict[str, Any] = websocket.app.state.services
    hub: RoomHub = services["room_hub"]
    service = services["negotiation_service"]

    actor = actor_from_headers(
        websocket.headers.get("X-User-Id") or websocket.query_params.get("user_id"),
        websocket.headers.get("X-User-Role") or websocket.query_params.get("role"),
    )
    if actor is None:
        await websocket.close(code=1008, reason="Authentication required")
        return

    try:
        await run_in_threadpool(service.get_negotiation, actor, negotiation_id)
    except (ForbiddenError, NotFoundError) as exc:
        logger.info("websocket_refused", negotiation_id=negotiation_id, reason=str(exc))
        await websocket.close(code=1008, reason=str(exc))
        return

    room = room_name(negotiation_id)
    hub.bind_loop(asyncio.get_running_loop())
    await websocket.accept()
    await hub.join(room, websocket)
    await websocket.send_json({"event": "joined", "room": room, "negotiation_id": negotiation_id})
    try:
        while True:
            # inbound frames are ignored; receiving detects the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.leave(room, websocket)

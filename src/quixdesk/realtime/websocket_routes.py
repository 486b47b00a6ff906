"""
WebSocket Routes
================

FastAPI WebSocket endpoint for live ticket and chat events.

Connect with: ws://host/ws?token=<access_token>

Client frames:
- {"type": "subscribe", "ticket_id": "..."}
- {"type": "unsubscribe", "ticket_id": "..."}
- {"type": "typing", "ticket_id": "...", "is_typing": true}
- {"type": "ping"}

Server frames: {"id": "...", "type": "...", "data": {...}, "timestamp": "..."}
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect

from quixdesk.accounts.application.services import AccountService
from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.accounts.interfaces.dependencies import require_roles
from quixdesk.config import Role
from quixdesk.core import ApplicationException
from quixdesk.infrastructure.database import get_session_context
from quixdesk.realtime.connection_manager import ConnectionInfo, ConnectionManager
from quixdesk.realtime.events import EventType, RealtimeEvent
from quixdesk.shared.infrastructure.logging import get_logger
from quixdesk.tickets.application.services import TicketGuard
from quixdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyTicketRepository,
)

logger = get_logger(__name__)
router = APIRouter(tags=["WebSocket"])

AUTH_FAILED_CLOSE_CODE = 4001


async def _authenticate(websocket: WebSocket, token: str) -> Any:
    """The token's user, or None when the token or account is not valid."""
    state = websocket.app.state
    async with get_session_context() as session:
        service = AccountService(
            SQLAlchemyUserRepository(session),
            hasher=state.password_hasher,
            tokens=state.token_service,
        )
        try:
            return await service.authenticate(token)
        except ApplicationException as e:
            logger.info("WebSocket authentication rejected", extra={"reason": e.message})
            return None


async def _ensure_participant(ticket_id: str, user: Any) -> None:
    async with get_session_context() as session:
        guard = TicketGuard(
            SQLAlchemyTicketRepository(session),
            SQLAlchemyAssignmentRepository(session),
        )
        await guard.for_participant(ticket_id, user)


async def _error(manager: ConnectionManager, connection: ConnectionInfo, message: str) -> None:
    await manager.send_to_connection(
        connection.connection_id,
        RealtimeEvent(event_type=EventType.ERROR, data={"message": message}),
    )


async def _handle_frame(
    websocket: WebSocket,
    connection: ConnectionInfo,
    user: Any,
    frame: Dict[str, Any]
) -> None:
    manager: ConnectionManager = websocket.app.state.event_publisher.manager
    frame_type = frame.get("type")
    ticket_id = str(frame.get("ticket_id") or "")

    if frame_type == "ping":
        await manager.send_to_connection(connection.connection_id, RealtimeEvent(event_type=EventType.PONG))
        return

    if frame_type not in ("subscribe", "unsubscribe", "typing"):
        await _error(manager, connection, f"Unknown message type: {frame_type}")
        return

    if not ticket_id:
        await _error(manager, connection, "ticket_id is required")
        return

    if frame_type == "unsubscribe":
        await manager.unsubscribe(connection.connection_id, ticket_id)
        await manager.send_to_connection(
            connection.connection_id,
            RealtimeEvent(event_type=EventType.UNSUBSCRIBED, data={"ticket_id": ticket_id}),
        )
        return

    if frame_type == "typing":
        if ticket_id not in connection.subscribed_tickets:
            await _error(manager, connection, "Subscribe to the ticket before sending typing updates")
            return
        is_typing = frame.get("is_typing", True)
        if not isinstance(is_typing, bool):
            await _error(manager, connection, "is_typing must be true or false")
            return
        await websocket.app.state.typing_tracker.update(ticket_id, connection.user_id, is_typing)
        return

    try:
        await _ensure_participant(ticket_id, user)
    except ApplicationException as e:
        await _error(manager, connection, e.message)
        return

    await manager.subscribe(connection.connection_id, ticket_id)
    await manager.send_to_connection(
        connection.connection_id,
        RealtimeEvent(event_type=EventType.SUBSCRIBED, data={"ticket_id": ticket_id}),
    )


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query("", description="Access token from /auth/login"),
):
    """Main WebSocket endpoint for real-time updates."""
    user = await _authenticate(websocket, token) if token else None
    if user is None:
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Invalid authentication token")
        return

    manager: ConnectionManager = websocket.app.state.event_publisher.manager
    connection = await manager.connect(websocket, str(user.id), user.role)

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except json.JSONDecodeError:
                await _error(manager, connection, "Frames must be JSON objects")
                continue

            manager.touch(connection.connection_id)
            if not isinstance(frame, dict):
                await _error(manager, connection, "Frames must be JSON objects")
                continue
            await _handle_frame(websocket, connection, user, frame)

    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(connection.connection_id)


@router.get("/ws/stats", summary="Live connection statistics")
async def websocket_stats(
    request: Request,
    _admin: Any = Depends(require_roles(Role.ADMIN)),
):
    return request.app.state.event_publisher.manager.get_stats()


websocket_router = router

"""
WebSocket Connection Manager
============================

Tracks live WebSocket connections and routes events to them.

Indexes:
- connection id -> ConnectionInfo
- user id -> connection ids (a user may have several tabs open)
- role -> connection ids
- ticket id -> subscribed connection ids (the per-ticket chat channel)

Delivery is best effort to whatever is connected right now. A socket
that fails on send is dropped from every index.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from fastapi import WebSocket

from quixdesk.realtime.events import EventType, RealtimeEvent
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConnectionInfo:
    """Information about one WebSocket connection."""
    websocket: WebSocket
    user_id: str
    role: str
    connection_id: str = field(default_factory=lambda: str(uuid4()))
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subscribed_tickets: Set[str] = field(default_factory=set)
    messages_sent: int = 0
    messages_received: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "user_id": self.user_id,
            "role": self.role,
            "connected_at": self.connected_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "subscribed_tickets": sorted(self.subscribed_tickets),
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
        }


class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    def __init__(self):
        self._connections: Dict[str, ConnectionInfo] = {}
        self._user_connections: Dict[str, Set[str]] = {}
        self._role_connections: Dict[str, Set[str]] = {}
        self._ticket_subscriptions: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str, role: str) -> ConnectionInfo:
        """Accept a socket and register it."""
        await websocket.accept()

        connection = ConnectionInfo(websocket=websocket, user_id=str(user_id), role=role)
        async with self._lock:
            self._connections[connection.connection_id] = connection
            self._user_connections.setdefault(connection.user_id, set()).add(connection.connection_id)
            self._role_connections.setdefault(role, set()).add(connection.connection_id)

        logger.info(
            "WebSocket connected",
            extra={"user_id": connection.user_id, "connection_id": connection.connection_id}
        )

        await self._send(connection, RealtimeEvent(
            event_type=EventType.CONNECTED,
            data={"user_id": connection.user_id, "connection_id": connection.connection_id},
        ))
        return connection

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return
            self._remove(connection)

        logger.info(
            "WebSocket disconnected",
            extra={"user_id": connection.user_id, "connection_id": connection_id}
        )

    def _remove(self, connection: ConnectionInfo) -> None:
        """Drop a connection from every index. Caller holds the lock."""
        cid = connection.connection_id
        self._connections.pop(cid, None)
        self._discard(self._user_connections, connection.user_id, cid)
        self._discard(self._role_connections, connection.role, cid)
        for ticket_id in list(connection.subscribed_tickets):
            self._discard(self._ticket_subscriptions, ticket_id, cid)
        connection.subscribed_tickets.clear()

    @staticmethod
    def _discard(index: Dict[str, Set[str]], key: str, cid: str) -> None:
        members = index.get(key)
        if members is None:
            return
        members.discard(cid)
        if not members:
            del index[key]

    async def subscribe(self, connection_id: str, ticket_id: str) -> bool:
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return False
            connection.subscribed_tickets.add(ticket_id)
            self._ticket_subscriptions.setdefault(ticket_id, set()).add(connection_id)
        logger.debug("Subscribed to ticket", extra={"connection_id": connection_id, "ticket_id": ticket_id})
        return True

    async def unsubscribe(self, connection_id: str, ticket_id: str) -> None:
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is not None:
                connection.subscribed_tickets.discard(ticket_id)
            self._discard(self._ticket_subscriptions, ticket_id, connection_id)

    async def send_to_connection(self, connection_id: str, event: RealtimeEvent) -> None:
        async with self._lock:
            connection = self._connections.get(connection_id)
        if connection is not None:
            await self._deliver([connection], event)

    async def send_to_user(self, user_id: str, event: RealtimeEvent) -> int:
        return await self._deliver(self._targets(self._user_connections.get(str(user_id), ())), event)

    async def send_to_role(self, role: str, event: RealtimeEvent) -> int:
        return await self._deliver(self._targets(self._role_connections.get(role, ())), event)

    async def publish_to_ticket(
        self,
        ticket_id: str,
        event: RealtimeEvent,
        exclude_user: Optional[str] = None
    ) -> int:
        """Send to every connection subscribed to the ticket channel."""
        targets = [
            c for c in self._targets(self._ticket_subscriptions.get(ticket_id, ()))
            if exclude_user is None or c.user_id != str(exclude_user)
        ]
        return await self._deliver(targets, event)

    async def fan_out(
        self,
        event: RealtimeEvent,
        ticket_id: Optional[str] = None,
        user_ids: Iterable[str] = (),
        roles: Iterable[str] = ()
    ) -> int:
        """Deliver once to the union of a ticket channel, users and roles."""
        ids: Set[str] = set()
        if ticket_id is not None:
            ids.update(self._ticket_subscriptions.get(ticket_id, ()))
        for user_id in user_ids:
            ids.update(self._user_connections.get(str(user_id), ()))
        for role in roles:
            ids.update(self._role_connections.get(role, ()))
        return await self._deliver(self._targets(ids), event)

    def _targets(self, connection_ids: Iterable[str]) -> List[ConnectionInfo]:
        return [self._connections[cid] for cid in list(connection_ids) if cid in self._connections]

    async def _deliver(self, connections: List[ConnectionInfo], event: RealtimeEvent) -> int:
        delivered = 0
        broken = []
        for connection in connections:
            if await self._send(connection, event):
                delivered += 1
            else:
                broken.append(connection)

        if broken:
            async with self._lock:
                for connection in broken:
                    self._remove(connection)
        return delivered

    async def _send(self, connection: ConnectionInfo, event: RealtimeEvent) -> bool:
        try:
            await connection.websocket.send_json(event.to_dict())
        except Exception as e:
            logger.warning(
                "WebSocket send failed, dropping connection",
                extra={"connection_id": connection.connection_id, "error": str(e)}
            )
            return False
        connection.messages_sent += 1
        connection.last_activity = datetime.now(timezone.utc)
        return True

    def touch(self, connection_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.messages_received += 1
            connection.last_activity = datetime.now(timezone.utc)

    def is_user_online(self, user_id: str) -> bool:
        return bool(self._user_connections.get(str(user_id)))

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_connections": len(self._connections),
            "online_users": len(self._user_connections),
            "active_ticket_channels": len(self._ticket_subscriptions),
            "connections_by_role": {
                role: len(ids) for role, ids in self._role_connections.items()
            },
        }


# Singleton instance
connection_manager = ConnectionManager()

"""
Event Publisher
===============

Domain-facing interface for publishing real-time events. Services depend
on this instead of the connection manager.
"""

from typing import Any, Dict, Iterable, Optional

from quixdesk.config import Role
from quixdesk.realtime.connection_manager import ConnectionManager, connection_manager
from quixdesk.realtime.events import EventType, RealtimeEvent
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EventPublisher:
    """
    Publishes ticket and chat events.

    Usage:
        await publisher.ticket_updated(ticket_id, payload, participants)
    """

    def __init__(self, manager: Optional[ConnectionManager] = None):
        self._manager = manager or connection_manager

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    async def publish(
        self,
        event_type: EventType,
        data: Dict[str, Any],
        ticket_id: Optional[str] = None,
        user_ids: Iterable[str] = (),
        roles: Iterable[str] = ()
    ) -> int:
        event = RealtimeEvent(event_type=event_type, data=data)
        delivered = await self._manager.fan_out(
            event, ticket_id=ticket_id, user_ids=user_ids, roles=roles
        )
        logger.debug(
            "Event published",
            extra={"event_type": event_type.value, "ticket_id": ticket_id, "delivered": delivered}
        )
        return delivered

    # ========== Tickets ==========

    async def ticket_created(self, ticket: Dict[str, Any]) -> int:
        return await self.publish(EventType.TICKET_CREATED, ticket, roles=[Role.ADMIN])

    async def ticket_updated(
        self,
        ticket_id: str,
        ticket: Dict[str, Any],
        participants: Iterable[str] = ()
    ) -> int:
        return await self.publish(
            EventType.TICKET_UPDATED, ticket, ticket_id=ticket_id, user_ids=participants
        )

    async def ticket_assigned(self, ticket_id: str, data: Dict[str, Any], employee_id: str) -> int:
        return await self.publish(
            EventType.TICKET_ASSIGNED, data, ticket_id=ticket_id, user_ids=[employee_id]
        )

    async def ticket_deleted(self, ticket_id: str, participants: Iterable[str] = ()) -> int:
        return await self.publish(
            EventType.TICKET_DELETED,
            {"ticket_id": ticket_id},
            ticket_id=ticket_id,
            user_ids=participants,
            roles=[Role.ADMIN]
        )

    async def response_overdue(self, data: Dict[str, Any]) -> int:
        return await self.publish(EventType.TICKET_RESPONSE_OVERDUE, data, roles=[Role.ADMIN])

    # ========== Chat ==========

    async def message_created(self, ticket_id: str, message: Dict[str, Any]) -> int:
        return await self.publish(EventType.MESSAGE_CREATED, message, ticket_id=ticket_id)

    async def message_updated(self, ticket_id: str, message: Dict[str, Any]) -> int:
        return await self.publish(EventType.MESSAGE_UPDATED, message, ticket_id=ticket_id)

    async def messages_read(self, ticket_id: str, reader_id: str, count: int) -> int:
        return await self.publish(
            EventType.MESSAGE_READ,
            {"ticket_id": ticket_id, "reader_id": reader_id, "count": count},
            ticket_id=ticket_id
        )

    async def typing(self, ticket_id: str, user_id: str, is_typing: bool) -> int:
        """Typing indicators are not echoed back to the typist."""
        event = RealtimeEvent(
            event_type=EventType.TYPING,
            data={"ticket_id": ticket_id, "user_id": user_id, "is_typing": is_typing},
        )
        return await self._manager.publish_to_ticket(ticket_id, event, exclude_user=user_id)


# Singleton instance
event_publisher = EventPublisher()

"""
Real-Time Event Models
======================

Event types and the envelope sent to WebSocket clients.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict
from uuid import uuid4


class EventType(str, Enum):
    """Types of real-time events."""
    # Connection
    CONNECTED = "connected"
    PONG = "pong"
    ERROR = "error"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"

    # Tickets
    TICKET_CREATED = "ticket.created"
    TICKET_UPDATED = "ticket.updated"
    TICKET_ASSIGNED = "ticket.assigned"
    TICKET_DELETED = "ticket.deleted"
    TICKET_RESPONSE_OVERDUE = "ticket.response_overdue"

    # Chat
    MESSAGE_CREATED = "message.created"
    MESSAGE_UPDATED = "message.updated"
    MESSAGE_READ = "message.read"
    TYPING = "typing"


@dataclass
class RealtimeEvent:
    """Envelope for one event: {id, type, data, timestamp}."""
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.event_type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }

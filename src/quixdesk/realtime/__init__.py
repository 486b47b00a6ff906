"""
Realtime Module
===============

WebSocket connections, ticket channel subscriptions and event fan-out.

Contains:
- ConnectionManager: connection registry, channels, presence
- EventPublisher: domain-level helpers for publishing events
- websocket_routes: the /ws endpoint
"""

from quixdesk.realtime.connection_manager import ConnectionManager, connection_manager
from quixdesk.realtime.events import EventType, RealtimeEvent
from quixdesk.realtime.publisher import EventPublisher, event_publisher

__all__ = [
    "ConnectionManager",
    "connection_manager",
    "EventType",
    "RealtimeEvent",
    "EventPublisher",
    "event_publisher",
]

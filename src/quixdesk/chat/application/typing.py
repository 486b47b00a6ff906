"""
Typing Indicators
=================

Tracks who is typing on which ticket and clears stale indicators.

A client reports typing while keys are pressed. If no refresh arrives
within the timeout the indicator is cleared and `is_typing=false` is
broadcast.
"""

import asyncio
from typing import Dict, Tuple

from quixdesk.realtime.publisher import EventPublisher
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_Key = Tuple[str, str]


class TypingTracker:
    """Per (ticket, user) expiry timers for typing indicators."""

    def __init__(self, publisher: EventPublisher, timeout_seconds: float = 3.0):
        self._publisher = publisher
        self._timeout = timeout_seconds
        self._timers: Dict[_Key, asyncio.Task] = {}
        # Serializes broadcasts so a late expiry never follows a refresh
        self._lock = asyncio.Lock()

    def is_typing(self, ticket_id: str, user_id: str) -> bool:
        return (ticket_id, user_id) in self._timers

    async def update(self, ticket_id: str, user_id: str, is_typing: bool) -> None:
        """Broadcast the state and (re)arm the expiry timer while typing."""
        key = (ticket_id, user_id)
        async with self._lock:
            self._cancel(key)
            await self._publisher.typing(ticket_id, user_id, is_typing)
            if is_typing:
                self._timers[key] = asyncio.create_task(self._expire(key))

    async def clear(self, ticket_id: str, user_id: str) -> None:
        """Stop an active indicator, e.g. once the message was sent."""
        async with self._lock:
            if self._cancel((ticket_id, user_id)):
                await self._publisher.typing(ticket_id, user_id, False)

    async def close(self) -> None:
        for key in list(self._timers):
            self._cancel(key)

    async def _expire(self, key: _Key) -> None:
        await asyncio.sleep(self._timeout)
        async with self._lock:
            if self._timers.get(key) is not asyncio.current_task():
                return
            del self._timers[key]
            ticket_id, user_id = key
            logger.debug("Typing indicator expired", extra={"ticket_id": ticket_id, "user_id": user_id})
            await self._publisher.typing(ticket_id, user_id, False)

    def _cancel(self, key: _Key) -> bool:
        task = self._timers.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

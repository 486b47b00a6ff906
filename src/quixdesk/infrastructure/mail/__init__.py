"""
Email Notifications
===================

Posts JSON payloads to the email relay endpoint. The relay picks a
template from the payload shape:

- `{"ticket": ...}` new ticket: name, email, title
- `{"ticket": ...}` assignment: + assignedEmployee
- `{"ticket": ...}` closure: + id, closed=True
- `{"passwordReset": ...}`: name, email, resetLink

Notifications are best effort: failures are logged and never raised.
Request handlers go through `NotificationDispatcher`, which sends in the
background so a slow relay never holds a request open.
"""

import asyncio
from typing import Any, Awaitable, Dict, Optional, Set

from quixdesk.config import settings
from quixdesk.shared.infrastructure.http import ResilientHttpClient
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmailNotifier(ResilientHttpClient):
    """Email relay client with circuit breaker and retry logic."""

    service_name = "Email"

    def __init__(self, endpoint: Optional[str] = None, **kwargs):
        kwargs.setdefault("timeout", settings.http_timeout_seconds)
        super().__init__(**kwargs)
        self._endpoint = endpoint if endpoint is not None else settings.email_service_url

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint)

    async def _deliver(self, payload: Dict[str, Any], title: Optional[str], recipient: str) -> bool:
        if not self._endpoint:
            logger.debug("Email endpoint not configured, skipping notification")
            return False

        response = await self._post(self._endpoint, json=payload)
        if response is None:
            logger.error("Email notification failed", extra={"title": title, "recipient": recipient})
            return False

        logger.info("Email notification sent", extra={"title": title, "recipient": recipient})
        return True

    async def send(self, ticket: Dict[str, Any]) -> bool:
        """
        Send a ticket notification.

        Returns:
            True if the relay accepted it, False otherwise
        """
        return await self._deliver({"ticket": ticket}, ticket.get("title"), ticket.get("email"))

    async def ticket_submitted(self, name: str, email: str, title: str) -> bool:
        return await self.send({"name": name, "email": email, "title": title})

    async def ticket_assigned(self, name: str, email: str, title: str, employee_name: str) -> bool:
        return await self.send({
            "name": name,
            "email": email,
            "title": title,
            "assignedEmployee": employee_name,
        })

    async def ticket_closed(self, ticket_id: str, name: str, email: str, title: str) -> bool:
        return await self.send({
            "id": ticket_id,
            "name": name or "Customer",
            "email": email,
            "title": title or "Support Ticket",
            "closed": True,
        })

    async def password_reset(self, name: str, email: str, reset_link: str) -> bool:
        return await self._deliver(
            {"passwordReset": {"name": name, "email": email, "resetLink": reset_link}},
            "Password reset",
            email
        )


class NotificationDispatcher:
    """
    Fire-and-forget front for a notifier.

    Each call schedules the send on the running loop and returns the task.
    Pending tasks are tracked so shutdown can drain them; a send that
    raises is logged.
    """

    def __init__(self, notifier: Any):
        self._notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    @property
    def notifier(self) -> Any:
        return self._notifier

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _dispatch(self, kind: str, send: Awaitable[bool]) -> asyncio.Task:
        task = asyncio.create_task(send, name=f"email:{kind}")
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Email notification crashed",
                extra={"task": task.get_name(), "error": str(error)}
            )

    def ticket_submitted(self, name: str, email: str, title: str) -> asyncio.Task:
        return self._dispatch("submitted", self._notifier.ticket_submitted(name, email, title))

    def ticket_assigned(self, name: str, email: str, title: str, employee_name: str) -> asyncio.Task:
        return self._dispatch(
            "assigned", self._notifier.ticket_assigned(name, email, title, employee_name)
        )

    def ticket_closed(self, ticket_id: str, name: str, email: str, title: str) -> asyncio.Task:
        return self._dispatch("closed", self._notifier.ticket_closed(ticket_id, name, email, title))

    def password_reset(self, name: str, email: str, reset_link: str) -> asyncio.Task:
        return self._dispatch("password_reset", self._notifier.password_reset(name, email, reset_link))

    async def drain(self) -> None:
        """Wait for every pending send to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self._notifier.close()


__all__ = ["EmailNotifier", "NotificationDispatcher"]

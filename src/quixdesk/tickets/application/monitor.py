"""
First-Response Monitor
======================

Finds open tickets nobody has picked up within the first-response target
and alerts admins once per ticket.
"""

from datetime import datetime, timedelta
from typing import Optional

from quixdesk.infrastructure.database import utcnow
from quixdesk.realtime.publisher import EventPublisher
from quixdesk.shared.infrastructure.logging import get_logger
from quixdesk.tickets.application.services import ITicketRepository

logger = get_logger(__name__)


class FirstResponseMonitor:
    """
    One pass of the first-response watcher.

    This service:
    1. Queries open tickets older than the target with no first response
    2. Stamps overdue_alerted_at so each ticket alerts only once
    3. Publishes ticket.response_overdue to admins
    """

    def __init__(
        self,
        tickets: ITicketRepository,
        publisher: EventPublisher,
        target_minutes: int = 30
    ):
        self._tickets = tickets
        self._publisher = publisher
        self._target = timedelta(minutes=target_minutes)

    async def run(self, now: Optional[datetime] = None) -> dict:
        """
        Returns:
            Summary of the pass
        """
        now = now or utcnow()
        overdue = await self._tickets.list_awaiting_first_response(now - self._target)

        for ticket in overdue:
            ticket.overdue_alerted_at = now
            await self._tickets.save(ticket)

            waited = int((now - ticket.created_at).total_seconds() // 60)
            await self._publisher.response_overdue({
                "ticket_id": str(ticket.id),
                "title": ticket.title,
                "priority": ticket.priority,
                "created_at": ticket.created_at.isoformat(),
                "minutes_waiting": waited,
                "target_minutes": int(self._target.total_seconds() // 60),
            })

        if overdue:
            logger.warning("Tickets awaiting first response", extra={"overdue_count": len(overdue)})

        return {"overdue": len(overdue)}

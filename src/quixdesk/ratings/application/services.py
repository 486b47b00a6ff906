"""
Ratings Application Services
=============================

Customers rate the employee who handled their ticket once it is closed.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

from quixdesk.accounts.application.services import IUserRepository
from quixdesk.config import Role, TicketStatus
from quixdesk.core import ConflictException, DomainException
from quixdesk.ratings.application.dto import (
    FeedbackResponse,
    PendingRatingResponse,
    RatingRequest,
)
from quixdesk.shared.infrastructure.logging import get_logger
from quixdesk.tickets.application.services import (
    IAssignmentRepository,
    ITicketRepository,
    TicketContext,
    TicketGuard,
)

logger = get_logger(__name__)


def format_average(ratings: Iterable[float]) -> str:
    """Mean to one decimal place; "0.0" for no ratings."""
    values = list(ratings)
    if not values:
        return "0.0"
    return f"{sum(values) / len(values):.1f}"


# ========== Repository Interfaces (Dependency Inversion) ==========

class IRatingRepository(ABC):
    """Interface for rating data access."""

    @abstractmethod
    async def create(
        self,
        ticket_id: str,
        customer_id: str,
        employee_id: str,
        rating: int,
        experience: Optional[str]
    ) -> Any:
        """Store a rating."""

    @abstractmethod
    async def get_for_ticket(self, ticket_id: str) -> Optional[Any]:
        """The rating of a ticket, if any."""

    @abstractmethod
    async def rated_ticket_ids(self, customer_id: str) -> set:
        """str ids of tickets the customer already rated."""

    @abstractmethod
    async def list_for_employee(self, employee_id: str) -> List[Any]:
        """Ratings of an employee, newest first."""


# ========== Services ==========

class RatingService:
    """Use cases for employee feedback."""

    def __init__(
        self,
        ratings: IRatingRepository,
        tickets: ITicketRepository,
        assignments: IAssignmentRepository,
        users: IUserRepository
    ):
        self._ratings = ratings
        self._tickets = tickets
        self._users = users
        self.guard = TicketGuard(tickets, assignments)

    async def _rated_employee_id(self, ctx: TicketContext) -> Optional[str]:
        """The closer when that is an employee, else the first assignee."""
        if ctx.ticket.closed_by is not None:
            closer = await self._users.get_by_id(str(ctx.ticket.closed_by))
            if closer is not None and closer.role == Role.EMPLOYEE:
                return str(closer.id)
        return ctx.assignee_ids[0] if ctx.assignee_ids else None

    async def rate(self, ticket_id: str, customer: Any, request: RatingRequest) -> FeedbackResponse:
        """
        Rate the employee who handled a closed ticket.

        Raises:
            PermissionDeniedException: caller does not own the ticket
            DomainException: ticket not closed or never assigned
            ConflictException: ticket already rated
        """
        ctx = await self.guard.for_owner(ticket_id, customer)
        if ctx.ticket.status != TicketStatus.CLOSED:
            raise DomainException("Only closed tickets can be rated")

        employee_id = await self._rated_employee_id(ctx)
        if employee_id is None:
            raise DomainException("This ticket was never assigned to an employee")

        if await self._ratings.get_for_ticket(ctx.ticket_id) is not None:
            raise ConflictException("This ticket has already been rated")

        rating = await self._ratings.create(
            ctx.ticket_id, str(customer.id), employee_id, request.rating, request.experience
        )
        logger.info(
            "Employee rated",
            extra={"ticket_id": ctx.ticket_id, "employee_id": employee_id, "rating": request.rating}
        )
        return (await self._present([rating], {ctx.ticket_id: ctx.ticket.title}))[0]

    async def pending_rating(self, customer: Any) -> Optional[PendingRatingResponse]:
        """The customer's first closed, assigned ticket without a rating."""
        closed = await self._tickets.list_for_owner(str(customer.id), status=TicketStatus.CLOSED)
        rated = await self._ratings.rated_ticket_ids(str(customer.id))

        for ticket in closed:
            if str(ticket.id) in rated:
                continue
            ctx = await self.guard.load(str(ticket.id))
            employee_id = await self._rated_employee_id(ctx)
            if employee_id is None:
                continue
            employee = await self._users.get_by_id(employee_id)
            return PendingRatingResponse(
                ticket_id=ctx.ticket_id,
                title=ticket.title,
                employee_id=employee_id,
                employee_name=employee.name if employee else None,
                closed_at=ticket.closed_at
            )
        return None

    async def feedback_for(self, employee_id: str) -> List[FeedbackResponse]:
        ratings = await self._ratings.list_for_employee(employee_id)
        titles = {}
        for rating in ratings:
            ticket = await self._tickets.get_by_id(str(rating.ticket_id))
            if ticket is not None:
                titles[str(ticket.id)] = ticket.title
        return await self._present(ratings, titles)

    async def _present(self, ratings: List[Any], titles: dict) -> List[FeedbackResponse]:
        user_ids = {str(r.user_id) for r in ratings} | {str(r.employee_id) for r in ratings}
        users = await self._users.get_many(user_ids)

        def name_of(user_id: Any) -> Optional[str]:
            user = users.get(str(user_id))
            return user.name if user else None

        return [
            FeedbackResponse(
                id=str(r.id),
                ticket_id=str(r.ticket_id),
                ticket_title=titles.get(str(r.ticket_id)),
                customer_id=str(r.user_id),
                customer_name=name_of(r.user_id),
                employee_id=str(r.employee_id),
                employee_name=name_of(r.employee_id),
                rating=r.rating,
                experience=r.experience,
                created_at=r.created_at
            )
            for r in ratings
        ]

"""
Tickets Application Services
=============================

Submission, listing, assignment, the closure workflow and the chat
session handshake.

Following SOLID principles:
- Services depend on repository interfaces, not SQLAlchemy
- Side effects (events, email) go through injected collaborators
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from quixdesk.accounts.application.services import IUserRepository
from quixdesk.config import Role, TicketStatus
from quixdesk.core import (
    ConflictException,
    ExternalServiceException,
    ConfigurationException,
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
)
from quixdesk.infrastructure.database import utcnow
from quixdesk.infrastructure.mail import NotificationDispatcher
from quixdesk.infrastructure.media import IMediaUploader
from quixdesk.realtime.publisher import EventPublisher
from quixdesk.shared.infrastructure.logging import get_logger
from quixdesk.tickets.application.dto import (
    AdminBoardResponse,
    AssignedPageResponse,
    AssignmentResponse,
    ModerationSummary,
    TicketCreateDTO,
    TicketListQuery,
    TicketResponse,
)
from quixdesk.tickets.domain.entities import (
    ChatSession,
    TicketAction,
    TicketWorkflow,
    chat_request_sort_key,
    is_participant,
    moderation_flag,
    owner_sort_key,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(self, user_id: str, data: Dict[str, Any]) -> Any:
        """Create a ticket owned by user_id."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Any]:
        """Get ticket by id."""

    @abstractmethod
    async def save(self, ticket: Any) -> Any:
        """Persist changes to a loaded ticket."""

    @abstractmethod
    async def delete(self, ticket: Any) -> None:
        """Delete a ticket with its assignments, messages and ratings."""

    @abstractmethod
    async def list_for_owner(
        self,
        user_id: str,
        status: Optional[str] = None,
        priority: Optional[str] = None
    ) -> List[Any]:
        """Tickets created by user_id, newest first."""

    @abstractmethod
    async def list_all(self) -> List[Any]:
        """All tickets, newest first."""

    @abstractmethod
    async def search(self, query: str, limit: int = 10) -> List[Any]:
        """Title contains query (case-insensitive) or id equals query."""

    @abstractmethod
    async def list_assigned_to(
        self,
        employee_id: str,
        search: Optional[str] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 20
    ) -> Tuple[List[Any], int]:
        """A page of tickets assigned to the employee plus the total count."""

    @abstractmethod
    async def list_open_assigned_to(self, employee_id: str) -> List[Any]:
        """Non-closed tickets assigned to the employee."""

    @abstractmethod
    async def list_unanalyzed(self) -> List[Any]:
        """Tickets never run through content moderation, oldest first."""

    @abstractmethod
    async def list_flagged(self) -> List[Any]:
        """Flagged tickets, newest first."""

    @abstractmethod
    async def list_awaiting_first_response(self, created_before: datetime) -> List[Any]:
        """Open, unanswered, not yet alerted tickets created before the cutoff."""


class IAssignmentRepository(ABC):
    """Interface for assignment data access."""

    @abstractmethod
    async def get(self, ticket_id: str, employee_id: str) -> Optional[Any]:
        """The assignment of employee to ticket, if any."""

    @abstractmethod
    async def create(self, ticket_id: str, employee_id: str) -> Any:
        """Assign the employee to the ticket."""

    @abstractmethod
    async def list_for_tickets(self, ticket_ids: Iterable[str]) -> Dict[str, List[Any]]:
        """Assignments keyed by str(ticket_id), oldest first."""


# ========== Access ==========

@dataclass
class TicketContext:
    """A ticket together with the ids of its assigned employees."""
    ticket: Any
    assignments: List[Any] = field(default_factory=list)

    @property
    def ticket_id(self) -> str:
        return str(self.ticket.id)

    @property
    def owner_id(self) -> str:
        return str(self.ticket.user_id)

    @property
    def assignee_ids(self) -> List[str]:
        return [str(a.user_id) for a in self.assignments]

    @property
    def participant_ids(self) -> List[str]:
        return [self.owner_id] + self.assignee_ids

    def is_owner(self, actor: Any) -> bool:
        return str(actor.id) == self.owner_id

    def is_assignee(self, actor: Any) -> bool:
        return str(actor.id) in self.assignee_ids


class TicketGuard:
    """Loads tickets and enforces who may see or act on them."""

    def __init__(self, tickets: ITicketRepository, assignments: IAssignmentRepository):
        self._tickets = tickets
        self._assignments = assignments

    async def load(self, ticket_id: str) -> TicketContext:
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        assignments = await self._assignments.list_for_tickets([str(ticket.id)])
        return TicketContext(ticket=ticket, assignments=assignments.get(str(ticket.id), []))

    async def for_participant(self, ticket_id: str, actor: Any) -> TicketContext:
        """
        Raises:
            ResourceNotFoundException: no such ticket
            PermissionDeniedException: actor is not owner, assignee or admin
        """
        ctx = await self.load(ticket_id)
        if not is_participant(ctx.owner_id, ctx.assignee_ids, str(actor.id), actor.role):
            raise PermissionDeniedException("You do not have access to this ticket")
        return ctx

    async def for_owner(self, ticket_id: str, actor: Any) -> TicketContext:
        ctx = await self.load(ticket_id)
        if not ctx.is_owner(actor):
            raise PermissionDeniedException("Only the ticket owner can do this")
        return ctx

    async def for_owner_or_admin(self, ticket_id: str, actor: Any) -> TicketContext:
        ctx = await self.load(ticket_id)
        if actor.role != Role.ADMIN and not ctx.is_owner(actor):
            raise PermissionDeniedException("Only the ticket owner or an admin can do this")
        return ctx

    async def for_support(self, ticket_id: str, actor: Any) -> TicketContext:
        """Assigned employees and admins."""
        ctx = await self.load(ticket_id)
        if actor.role != Role.ADMIN and not ctx.is_assignee(actor):
            raise PermissionDeniedException("Only assigned support staff can do this")
        return ctx


# ========== Services ==========

class TicketService:
    """Use cases for tickets."""

    def __init__(
        self,
        tickets: ITicketRepository,
        assignments: IAssignmentRepository,
        users: IUserRepository,
        publisher: EventPublisher,
        notifier: Optional[NotificationDispatcher] = None,
        media: Optional[IMediaUploader] = None
    ):
        self._tickets = tickets
        self._assignments = assignments
        self._users = users
        self._publisher = publisher
        self._notifier = notifier
        self._media = media
        self.guard = TicketGuard(tickets, assignments)

    # ---------- Presentation helpers ----------

    async def _present_many(self, tickets: List[Any]) -> List[TicketResponse]:
        """Attach assignments and user names to a batch of tickets."""
        if not tickets:
            return []

        by_ticket = await self._assignments.list_for_tickets([str(t.id) for t in tickets])
        user_ids = {str(a.user_id) for items in by_ticket.values() for a in items}
        user_ids.update(str(t.closed_by) for t in tickets if t.closed_by)
        users = await self._users.get_many(user_ids)

        def name_of(user_id: Any) -> Optional[str]:
            user = users.get(str(user_id)) if user_id else None
            return user.name if user else None

        presented = []
        for ticket in tickets:
            assignments = [
                AssignmentResponse(
                    id=str(a.id),
                    ticket_id=str(a.ticket_id),
                    employee_id=str(a.user_id),
                    employee_name=name_of(a.user_id),
                    assigned_at=a.assigned_at,
                )
                for a in by_ticket.get(str(ticket.id), [])
            ]
            closed_by_name = name_of(ticket.closed_by) if ticket.status == TicketStatus.CLOSED else None
            presented.append(TicketResponse.from_model(ticket, assignments, closed_by_name))
        return presented

    async def present(self, ticket: Any) -> TicketResponse:
        return (await self._present_many([ticket]))[0]

    async def _broadcast_update(self, ctx: TicketContext) -> TicketResponse:
        presented = await self.present(ctx.ticket)
        await self._publisher.ticket_updated(
            ctx.ticket_id, presented.model_dump(mode="json"), ctx.participant_ids
        )
        return presented

    async def _save_and_broadcast(self, ctx: TicketContext) -> TicketResponse:
        ctx.ticket.updated_at = utcnow()
        await self._tickets.save(ctx.ticket)
        return await self._broadcast_update(ctx)

    # ---------- Submission ----------

    async def submit(
        self,
        user: Any,
        form: TicketCreateDTO,
        image: Optional[Tuple[str, bytes, str]] = None
    ) -> TicketResponse:
        """
        File a ticket.

        A failed image upload does not block submission; the ticket is
        stored without an image.
        """
        image_url = None
        if image is not None and self._media is not None:
            filename, content, content_type = image
            try:
                image_url = await self._media.upload(filename, content, content_type)
            except (ExternalServiceException, ConfigurationException, ValidationException) as e:
                logger.warning(
                    "Ticket image upload failed, submitting without image",
                    extra={"user_id": str(user.id), "error": e.message}
                )

        flag_reason = moderation_flag(form.title, form.description)
        ticket = await self._tickets.create(str(user.id), {
            **form.model_dump(),
            "email": str(form.email),
            "image_url": image_url,
            "status": TicketStatus.OPEN,
            "is_flagged": flag_reason is not None,
            "flag_reason": flag_reason,
            "analyzed_at": utcnow(),
        })
        logger.info(
            "Ticket submitted",
            extra={"ticket_id": str(ticket.id), "user_id": str(user.id), "priority": ticket.priority}
        )
        if flag_reason is not None:
            logger.warning(
                "Ticket flagged by moderation",
                extra={"ticket_id": str(ticket.id), "reason": flag_reason}
            )

        if self._notifier is not None:
            self._notifier.ticket_submitted(ticket.name, ticket.email, ticket.title)

        presented = await self.present(ticket)
        await self._publisher.ticket_created(presented.model_dump(mode="json"))
        return presented

    # ---------- Reads ----------

    async def get(self, ticket_id: str, actor: Any) -> TicketResponse:
        ctx = await self.guard.for_participant(ticket_id, actor)
        return await self.present(ctx.ticket)

    async def list_for_user(self, user: Any, query: TicketListQuery) -> List[TicketResponse]:
        """
        The owner's tickets. Search covers title, id, status and the
        assigned employee's name.
        """
        tickets = await self._tickets.list_for_owner(str(user.id), query.status, query.priority)
        tickets.sort(key=owner_sort_key)
        presented = await self._present_many(tickets)

        if query.search:
            needle = query.search.strip().lower()
            presented = [t for t in presented if _matches(t, needle)]
        return presented

    async def list_closed_for_user(self, user: Any) -> List[TicketResponse]:
        tickets = await self._tickets.list_for_owner(str(user.id), status=TicketStatus.CLOSED)
        return await self._present_many(tickets)

    async def admin_board(self, search: Optional[str] = None) -> AdminBoardResponse:
        presented = await self._present_many(await self._tickets.list_all())
        if search:
            needle = search.strip().lower()
            presented = [t for t in presented if _matches(t, needle)]
        return AdminBoardResponse(
            unassigned=[t for t in presented if not t.assignments],
            assigned=[t for t in presented if t.assignments],
        )

    async def list_assigned(
        self,
        employee: Any,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> AssignedPageResponse:
        tickets, total = await self._tickets.list_assigned_to(
            str(employee.id),
            search=search,
            status=status,
            offset=(page - 1) * page_size,
            limit=page_size
        )
        return AssignedPageResponse(
            items=await self._present_many(tickets),
            total=total,
            page=page,
            page_size=page_size
        )

    async def list_chat_requests(self, employee: Any) -> List[TicketResponse]:
        tickets = await self._tickets.list_open_assigned_to(str(employee.id))
        tickets.sort(key=chat_request_sort_key)
        return await self._present_many(tickets)

    async def search(self, query: str) -> List[Any]:
        query = (query or "").strip()
        if not query:
            return []
        return await self._tickets.search(query, limit=10)

    # ---------- Deletion ----------

    async def delete(self, ticket_id: str, user: Any) -> None:
        """Owners delete their own tickets; admins may delete any."""
        ctx = await self.guard.for_owner_or_admin(ticket_id, user)
        participants = ctx.participant_ids
        await self._tickets.delete(ctx.ticket)
        logger.info("Ticket deleted", extra={"ticket_id": ticket_id, "user_id": str(user.id)})
        await self._publisher.ticket_deleted(ticket_id, participants)

    # ---------- Moderation ----------

    async def moderate_pending(self, admin: Any) -> ModerationSummary:
        """Run the moderation word list over every ticket not yet analyzed."""
        tickets = await self._tickets.list_unanalyzed()
        now = utcnow()
        flagged_ids = []
        for ticket in tickets:
            reason = moderation_flag(ticket.title, ticket.description)
            ticket.is_flagged = reason is not None
            ticket.flag_reason = reason
            ticket.analyzed_at = now
            await self._tickets.save(ticket)
            if reason is not None:
                flagged_ids.append(str(ticket.id))

        logger.info(
            "Moderation pass finished",
            extra={"analyzed": len(tickets), "flagged": len(flagged_ids), "admin_id": str(admin.id)}
        )
        return ModerationSummary(analyzed=len(tickets), flagged=len(flagged_ids), flagged_ids=flagged_ids)

    async def list_flagged(self) -> List[TicketResponse]:
        return await self._present_many(await self._tickets.list_flagged())

    # ---------- Assignment ----------

    async def assign(self, ticket_id: str, employee_id: str, admin: Any) -> TicketResponse:
        ctx = await self.guard.load(ticket_id)
        if ctx.ticket.status == TicketStatus.CLOSED:
            raise InvalidTransitionException("assign", ctx.ticket.status)

        employee = await self._users.get_by_id(employee_id)
        if employee is None or employee.is_deleted or employee.role != Role.EMPLOYEE:
            raise ResourceNotFoundException("Employee", employee_id)

        if await self._assignments.get(ctx.ticket_id, str(employee.id)) is not None:
            raise ConflictException(f"Ticket already assigned to {employee.name}")

        assignment = await self._assignments.create(ctx.ticket_id, str(employee.id))
        ctx.assignments.append(assignment)
        logger.info(
            "Ticket assigned",
            extra={"ticket_id": ctx.ticket_id, "employee_id": str(employee.id), "admin_id": str(admin.id)}
        )

        if self._notifier is not None:
            self._notifier.ticket_assigned(
                ctx.ticket.name, ctx.ticket.email, ctx.ticket.title, employee.name
            )

        presented = await self.present(ctx.ticket)
        payload = presented.model_dump(mode="json")
        await self._publisher.ticket_assigned(ctx.ticket_id, payload, str(employee.id))
        await self._publisher.ticket_updated(ctx.ticket_id, payload, [ctx.owner_id])
        return presented

    # ---------- Closure workflow ----------

    async def request_closure(self, ticket_id: str, actor: Any) -> TicketResponse:
        ctx = await self.guard.for_support(ticket_id, actor)
        ctx.ticket.status = TicketWorkflow.transition(TicketAction.REQUEST_CLOSURE, ctx.ticket.status)
        ctx.ticket.closed_by = actor.id
        logger.info("Closure requested", extra={"ticket_id": ticket_id, "actor_id": str(actor.id)})
        return await self._save_and_broadcast(ctx)

    async def confirm_closure(self, ticket_id: str, user: Any) -> TicketResponse:
        ctx = await self.guard.for_owner(ticket_id, user)
        ctx.ticket.status = TicketWorkflow.transition(TicketAction.CONFIRM_CLOSURE, ctx.ticket.status)
        ctx.ticket.closed_at = utcnow()
        ChatSession.of(ctx.ticket).end().apply_to(ctx.ticket)
        logger.info("Closure confirmed", extra={"ticket_id": ticket_id, "user_id": str(user.id)})

        presented = await self._save_and_broadcast(ctx)
        if self._notifier is not None:
            self._notifier.ticket_closed(
                ctx.ticket_id, ctx.ticket.name, ctx.ticket.email, ctx.ticket.title
            )
        return presented

    async def close(self, ticket_id: str, actor: Any) -> TicketResponse:
        ctx = await self.guard.for_support(ticket_id, actor)
        ctx.ticket.status = TicketWorkflow.transition(TicketAction.CLOSE, ctx.ticket.status)
        ctx.ticket.closed_by = actor.id
        ctx.ticket.closed_at = utcnow()
        ChatSession.of(ctx.ticket).end().apply_to(ctx.ticket)
        logger.info("Ticket closed", extra={"ticket_id": ticket_id, "actor_id": str(actor.id)})
        return await self._save_and_broadcast(ctx)

    # ---------- Chat session handshake ----------

    async def _change_session(self, ctx: TicketContext, session: ChatSession) -> TicketResponse:
        if ctx.ticket.status == TicketStatus.CLOSED:
            raise InvalidTransitionException("change the chat session of", ctx.ticket.status)
        session.apply_to(ctx.ticket)
        return await self._save_and_broadcast(ctx)

    async def request_chat(self, ticket_id: str, user: Any) -> TicketResponse:
        ctx = await self.guard.for_owner(ticket_id, user)
        return await self._change_session(ctx, ChatSession.of(ctx.ticket).request())

    async def cancel_chat_request(self, ticket_id: str, user: Any) -> TicketResponse:
        ctx = await self.guard.for_owner(ticket_id, user)
        return await self._change_session(ctx, ChatSession.of(ctx.ticket).cancel_request())

    async def connect_employee(self, ticket_id: str, employee: Any) -> TicketResponse:
        """Employee picks up the chat; counts as the first response."""
        ctx = await self.guard.for_support(ticket_id, employee)
        ctx.ticket.status = TicketWorkflow.transition(TicketAction.ANSWER, ctx.ticket.status)
        if ctx.ticket.first_response_at is None:
            ctx.ticket.first_response_at = utcnow()
        logger.info("Employee connected to chat", extra={"ticket_id": ticket_id, "employee_id": str(employee.id)})
        return await self._change_session(ctx, ChatSession.of(ctx.ticket).connect_employee())

    async def join_chat(self, ticket_id: str, user: Any) -> TicketResponse:
        ctx = await self.guard.for_owner(ticket_id, user)
        return await self._change_session(ctx, ChatSession.of(ctx.ticket).join())

    async def end_chat(self, ticket_id: str, actor: Any) -> TicketResponse:
        ctx = await self.guard.for_participant(ticket_id, actor)
        return await self._change_session(ctx, ChatSession.of(ctx.ticket).end())


def _matches(ticket: TicketResponse, needle: str) -> bool:
    haystacks = [ticket.title, ticket.id, ticket.status]
    haystacks.extend(a.employee_name or "" for a in ticket.assignments)
    return any(needle in h.lower() for h in haystacks)

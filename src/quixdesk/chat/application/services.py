"""
Chat Application Services
==========================

Messages, read receipts, reactions and typing indicators on a ticket.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from quixdesk.accounts.application.services import IUserRepository
from quixdesk.accounts.domain.entities import is_staff
from quixdesk.chat.application.dto import MessageCreateRequest, MessageResponse
from quixdesk.chat.application.typing import TypingTracker
from quixdesk.config import TicketStatus, VALID_REACTIONS
from quixdesk.core import (
    DomainException,
    InvalidTransitionException,
    ResourceNotFoundException,
    ValidationException,
)
from quixdesk.infrastructure.database import utcnow
from quixdesk.infrastructure.media import IMediaUploader
from quixdesk.realtime.publisher import EventPublisher
from quixdesk.shared.infrastructure.logging import get_logger
from quixdesk.tickets.application.services import (
    IAssignmentRepository,
    ITicketRepository,
    TicketGuard,
)
from quixdesk.tickets.domain.entities import counterpart_id

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IMessageRepository(ABC):
    """Interface for chat message data access."""

    @abstractmethod
    async def create(
        self,
        ticket_id: str,
        sender_id: str,
        content: Optional[str],
        image_url: Optional[str]
    ) -> Any:
        """Store a message."""

    @abstractmethod
    async def get_by_id(self, message_id: str) -> Optional[Any]:
        """Get message by id."""

    @abstractmethod
    async def save(self, message: Any) -> Any:
        """Persist changes to a loaded message."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[Any]:
        """Messages of a ticket, oldest first."""

    @abstractmethod
    async def mark_read(self, ticket_id: str, reader_id: str, read_at: datetime) -> int:
        """Stamp read_at on unread messages not sent by the reader; returns the count."""


# ========== Services ==========

class ChatService:
    """Use cases for ticket chat."""

    def __init__(
        self,
        messages: IMessageRepository,
        tickets: ITicketRepository,
        assignments: IAssignmentRepository,
        users: IUserRepository,
        publisher: EventPublisher,
        media: Optional[IMediaUploader] = None,
        typing: Optional[TypingTracker] = None
    ):
        self._messages = messages
        self._tickets = tickets
        self._users = users
        self._publisher = publisher
        self._media = media
        self._typing = typing
        self.guard = TicketGuard(tickets, assignments)

    async def send(self, ticket_id: str, sender: Any, request: MessageCreateRequest) -> MessageResponse:
        """
        Post a message to a ticket's chat.

        Raises:
            PermissionDeniedException: sender is not a participant
            InvalidTransitionException: ticket is closed
            ValidationException: neither content nor image given
        """
        ctx = await self.guard.for_participant(ticket_id, sender)
        if ctx.ticket.status == TicketStatus.CLOSED:
            raise InvalidTransitionException("send messages on", ctx.ticket.status)
        if not request.content and not request.image_url:
            raise ValidationException("A message needs text or an image")

        message = await self._messages.create(
            ctx.ticket_id, str(sender.id), request.content, request.image_url
        )

        if is_staff(sender.role) and ctx.ticket.first_response_at is None:
            ctx.ticket.first_response_at = message.created_at
            await self._tickets.save(ctx.ticket)

        logger.info(
            "Message sent",
            extra={"ticket_id": ctx.ticket_id, "sender_id": str(sender.id), "has_image": bool(request.image_url)}
        )

        if self._typing is not None:
            await self._typing.clear(ctx.ticket_id, str(sender.id))

        presented = MessageResponse.model_validate(message)
        await self._publisher.message_created(ctx.ticket_id, presented.model_dump(mode="json"))
        return presented

    async def upload_image(
        self,
        ticket_id: str,
        sender: Any,
        filename: str,
        content: bytes,
        content_type: str
    ) -> str:
        """Upload a chat image; the returned URL is then sent as a message."""
        await self.guard.for_participant(ticket_id, sender)
        if self._media is None:
            raise ValidationException("Image uploads are not available")
        return await self._media.upload(filename, content, content_type)

    async def list_messages(self, ticket_id: str, actor: Any) -> List[Any]:
        ctx = await self.guard.for_participant(ticket_id, actor)
        return await self._messages.list_for_ticket(ctx.ticket_id)

    async def mark_read(self, ticket_id: str, reader: Any) -> int:
        ctx = await self.guard.for_participant(ticket_id, reader)
        count = await self._messages.mark_read(ctx.ticket_id, str(reader.id), utcnow())
        if count:
            await self._publisher.messages_read(ctx.ticket_id, str(reader.id), count)
        return count

    async def react(self, message_id: str, actor: Any, reaction: Optional[str]) -> MessageResponse:
        """Set or clear the reaction on a message."""
        if reaction is not None and reaction not in VALID_REACTIONS:
            raise DomainException(
                f"Unsupported reaction '{reaction}'",
                details={"allowed": list(VALID_REACTIONS)}
            )

        message = await self._messages.get_by_id(message_id)
        if message is None:
            raise ResourceNotFoundException("Message", message_id)
        await self.guard.for_participant(str(message.ticket_id), actor)

        message.reaction = reaction
        await self._messages.save(message)

        presented = MessageResponse.model_validate(message)
        await self._publisher.message_updated(presented.ticket_id, presented.model_dump(mode="json"))
        return presented

    async def typing(self, ticket_id: str, actor: Any, is_typing: bool) -> None:
        ctx = await self.guard.for_participant(ticket_id, actor)
        if self._typing is not None:
            await self._typing.update(ctx.ticket_id, str(actor.id), is_typing)
        else:
            await self._publisher.typing(ctx.ticket_id, str(actor.id), is_typing)

    async def counterpart(self, ticket_id: str, actor: Any) -> Optional[Any]:
        """The assignee for the owner, the owner for an assignee."""
        ctx = await self.guard.for_participant(ticket_id, actor)
        other_id = counterpart_id(ctx.owner_id, ctx.assignee_ids, str(actor.id))
        if other_id is None:
            return None
        return await self._users.get_by_id(other_id)

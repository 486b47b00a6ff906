"""
Chat Infrastructure Repositories
=================================

SQLAlchemy implementation of the message repository.
"""

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.chat.application.services import IMessageRepository
from quixdesk.chat.infrastructure.models import MessageModel
from quixdesk.infrastructure.database import parse_uuid, utcnow


class SQLAlchemyMessageRepository(IMessageRepository):
    """Persistence of chat messages using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        ticket_id: str,
        sender_id: str,
        content: Optional[str],
        image_url: Optional[str]
    ) -> MessageModel:
        model = MessageModel(
            id=uuid4(),
            ticket_id=parse_uuid(ticket_id),
            sender_id=parse_uuid(sender_id),
            content=content,
            image_url=image_url,
            created_at=utcnow()
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def get_by_id(self, message_id: str) -> Optional[MessageModel]:
        message_uuid = parse_uuid(message_id)
        if message_uuid is None:
            return None
        return await self._session.get(MessageModel, message_uuid)

    async def save(self, message: MessageModel) -> MessageModel:
        self._session.add(message)
        await self._session.flush()
        return message

    async def list_for_ticket(self, ticket_id: str) -> List[MessageModel]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.ticket_id == parse_uuid(ticket_id))
            .order_by(MessageModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, ticket_id: str, reader_id: str, read_at: datetime) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.ticket_id == parse_uuid(ticket_id),
                MessageModel.sender_id != parse_uuid(reader_id),
                MessageModel.read_at.is_(None)
            )
            .values(read_at=read_at)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

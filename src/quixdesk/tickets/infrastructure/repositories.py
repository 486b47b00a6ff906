"""
Tickets Infrastructure Repositories
====================================

SQLAlchemy implementations of the ticket and assignment repositories.
"""

from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import delete, func, or_, select

from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.config import TicketStatus
from quixdesk.infrastructure.database import parse_uuid, utcnow
from quixdesk.tickets.application.services import IAssignmentRepository, ITicketRepository
from quixdesk.tickets.infrastructure.models import AssignmentModel, TicketModel


class SQLAlchemyTicketRepository(ITicketRepository):
    """Persistence of tickets using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, user_id: str, data: Dict[str, Any]) -> TicketModel:
        now = utcnow()
        model = TicketModel(
            id=uuid4(),
            user_id=parse_uuid(user_id),
            created_at=now,
            updated_at=now,
            **data
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def get_by_id(self, ticket_id: str) -> Optional[TicketModel]:
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None
        return await self._session.get(TicketModel, ticket_uuid)

    async def save(self, ticket: TicketModel) -> TicketModel:
        self._session.add(ticket)
        await self._session.flush()
        return ticket

    async def delete(self, ticket: TicketModel) -> None:
        # Dependent rows are removed explicitly; SQLite does not enforce
        # ON DELETE CASCADE unless foreign keys are switched on.
        from quixdesk.chat.infrastructure.models import MessageModel
        from quixdesk.ratings.infrastructure.models import RatingModel

        for model in (MessageModel, RatingModel, AssignmentModel):
            await self._session.execute(delete(model).where(model.ticket_id == ticket.id))
        await self._session.delete(ticket)
        await self._session.flush()

    async def list_for_owner(
        self,
        user_id: str,
        status: Optional[str] = None,
        priority: Optional[str] = None
    ) -> List[TicketModel]:
        stmt = select(TicketModel).where(TicketModel.user_id == parse_uuid(user_id))
        if status:
            stmt = stmt.where(TicketModel.status == status)
        if priority:
            stmt = stmt.where(TicketModel.priority == priority)
        stmt = stmt.order_by(TicketModel.created_at.desc())

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self) -> List[TicketModel]:
        stmt = select(TicketModel).order_by(TicketModel.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def search(self, query: str, limit: int = 10) -> List[TicketModel]:
        conditions = [TicketModel.title.ilike(f"%{query}%")]
        ticket_uuid = parse_uuid(query)
        if ticket_uuid is not None:
            conditions.append(TicketModel.id == ticket_uuid)

        stmt = (
            select(TicketModel)
            .where(or_(*conditions))
            .order_by(TicketModel.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_assigned_to(
        self,
        employee_id: str,
        search: Optional[str] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 20
    ) -> Tuple[List[TicketModel], int]:
        stmt = (
            select(TicketModel)
            .join(AssignmentModel, AssignmentModel.ticket_id == TicketModel.id)
            .where(AssignmentModel.user_id == parse_uuid(employee_id))
        )
        if search:
            stmt = stmt.where(TicketModel.title.ilike(f"%{search.strip()}%"))
        if status:
            stmt = stmt.where(TicketModel.status == status)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(TicketModel.created_at.desc()).offset(offset).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_unanalyzed(self) -> List[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.analyzed_at.is_(None))
            .order_by(TicketModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_flagged(self) -> List[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.is_flagged.is_(True))
            .order_by(TicketModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_open_assigned_to(self, employee_id: str) -> List[TicketModel]:
        stmt = (
            select(TicketModel)
            .join(AssignmentModel, AssignmentModel.ticket_id == TicketModel.id)
            .where(
                AssignmentModel.user_id == parse_uuid(employee_id),
                TicketModel.status != TicketStatus.CLOSED
            )
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_awaiting_first_response(self, created_before: datetime) -> List[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.status == TicketStatus.OPEN,
                TicketModel.first_response_at.is_(None),
                TicketModel.overdue_alerted_at.is_(None),
                TicketModel.created_at <= created_before
            )
            .order_by(TicketModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyAssignmentRepository(IAssignmentRepository):
    """Persistence of ticket assignments."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: str, employee_id: str) -> Optional[AssignmentModel]:
        stmt = select(AssignmentModel).where(
            AssignmentModel.ticket_id == parse_uuid(ticket_id),
            AssignmentModel.user_id == parse_uuid(employee_id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, ticket_id: str, employee_id: str) -> AssignmentModel:
        model = AssignmentModel(
            id=uuid4(),
            ticket_id=parse_uuid(ticket_id),
            user_id=parse_uuid(employee_id),
            assigned_at=utcnow()
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_for_tickets(self, ticket_ids: Iterable[str]) -> Dict[str, List[AssignmentModel]]:
        uuids = {u for u in (parse_uuid(i) for i in ticket_ids) if u is not None}
        if not uuids:
            return {}

        stmt = (
            select(AssignmentModel)
            .where(AssignmentModel.ticket_id.in_(uuids))
            .order_by(AssignmentModel.assigned_at.asc())
        )
        result = await self._session.execute(stmt)

        grouped: Dict[str, List[AssignmentModel]] = defaultdict(list)
        for assignment in result.scalars().all():
            grouped[str(assignment.ticket_id)].append(assignment)
        return dict(grouped)

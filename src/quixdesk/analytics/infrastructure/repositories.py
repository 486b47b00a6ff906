"""
Analytics Infrastructure Repositories
======================================

Read-only SQLAlchemy queries feeding the dashboards.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.infrastructure.models import UserModel
from quixdesk.analytics.application.services import IAnalyticsRepository
from quixdesk.infrastructure.database import parse_uuid
from quixdesk.ratings.infrastructure.models import RatingModel
from quixdesk.tickets.infrastructure.models import AssignmentModel, TicketModel


class SQLAlchemyAnalyticsRepository(IAnalyticsRepository):
    """Analytics queries over tickets, users, assignments and ratings."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_tickets(self) -> List[TicketModel]:
        stmt = select(TicketModel).order_by(TicketModel.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_users(self) -> List[UserModel]:
        stmt = select(UserModel).where(UserModel.is_deleted.is_(False))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_assignments(self, since: Optional[datetime] = None) -> List[AssignmentModel]:
        stmt = select(AssignmentModel)
        if since is not None:
            stmt = stmt.where(AssignmentModel.assigned_at >= since)
        result = await self._session.execute(stmt.order_by(AssignmentModel.assigned_at.asc()))
        return list(result.scalars().all())

    async def list_ratings(self, since: Optional[datetime] = None) -> List[RatingModel]:
        stmt = select(RatingModel)
        if since is not None:
            stmt = stmt.where(RatingModel.created_at >= since)
        result = await self._session.execute(stmt.order_by(RatingModel.created_at.desc()))
        return list(result.scalars().all())

    async def count_tickets(
        self,
        owner_id: Optional[str] = None,
        status: Optional[str] = None,
        closed_by: Optional[str] = None
    ) -> int:
        stmt = select(func.count(TicketModel.id))
        if owner_id is not None:
            stmt = stmt.where(TicketModel.user_id == parse_uuid(owner_id))
        if status is not None:
            stmt = stmt.where(TicketModel.status == status)
        if closed_by is not None:
            stmt = stmt.where(TicketModel.closed_by == parse_uuid(closed_by))
        return (await self._session.execute(stmt)).scalar_one()

    async def count_users(self, role: Optional[str] = None) -> int:
        stmt = select(func.count(UserModel.id)).where(UserModel.is_deleted.is_(False))
        if role is not None:
            stmt = stmt.where(UserModel.role == role)
        return (await self._session.execute(stmt)).scalar_one()

    async def count_assignments(self, employee_id: str) -> int:
        stmt = select(func.count(AssignmentModel.id)).where(
            AssignmentModel.user_id == parse_uuid(employee_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

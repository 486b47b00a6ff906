"""
Ratings Infrastructure Repositories
====================================
"""

from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.infrastructure.database import parse_uuid, utcnow
from quixdesk.ratings.application.services import IRatingRepository
from quixdesk.ratings.infrastructure.models import RatingModel


class SQLAlchemyRatingRepository(IRatingRepository):
    """Persistence of employee ratings."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        ticket_id: str,
        customer_id: str,
        employee_id: str,
        rating: int,
        experience: Optional[str]
    ) -> RatingModel:
        model = RatingModel(
            id=uuid4(),
            ticket_id=parse_uuid(ticket_id),
            user_id=parse_uuid(customer_id),
            employee_id=parse_uuid(employee_id),
            rating=rating,
            experience=experience,
            created_at=utcnow()
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def get_for_ticket(self, ticket_id: str) -> Optional[RatingModel]:
        stmt = select(RatingModel).where(RatingModel.ticket_id == parse_uuid(ticket_id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def rated_ticket_ids(self, customer_id: str) -> set:
        stmt = select(RatingModel.ticket_id).where(RatingModel.user_id == parse_uuid(customer_id))
        result = await self._session.execute(stmt)
        return {str(ticket_id) for ticket_id in result.scalars().all()}

    async def list_for_employee(self, employee_id: str) -> List[RatingModel]:
        employee_uuid = parse_uuid(employee_id)
        if employee_uuid is None:
            return []
        stmt = (
            select(RatingModel)
            .where(RatingModel.employee_id == employee_uuid)
            .order_by(RatingModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

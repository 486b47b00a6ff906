"""
Accounts Infrastructure Repositories
=====================================

SQLAlchemy implementation of the user repository.
"""

from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.application.services import IUserRepository
from quixdesk.accounts.infrastructure.models import UserModel
from quixdesk.config import Role
from quixdesk.infrastructure.database import parse_uuid


class SQLAlchemyUserRepository(IUserRepository):
    """Persistence of accounts using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        user_uuid = parse_uuid(user_id)
        if user_uuid is None:
            return None
        return await self._session.get(UserModel, user_uuid)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(UserModel.email == email)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserModel]:
        uuids = {u for u in (parse_uuid(i) for i in user_ids) if u is not None}
        if not uuids:
            return {}
        stmt = select(UserModel).where(UserModel.id.in_(uuids))
        result = await self._session.execute(stmt)
        return {str(user.id): user for user in result.scalars().all()}

    async def create(
        self,
        name: str,
        email: str,
        phone: Optional[str],
        role: str,
        password_hash: str,
        profile_picture: Optional[str] = None
    ) -> UserModel:
        model = UserModel(
            id=uuid4(),
            name=name,
            email=email,
            phone=phone,
            role=role,
            password_hash=password_hash,
            profile_picture=profile_picture,
            is_deleted=False
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def save(self, user: UserModel) -> UserModel:
        self._session.add(user)
        await self._session.flush()
        return user

    async def list_employees(self, search: Optional[str] = None) -> List[UserModel]:
        stmt = select(UserModel).where(
            UserModel.role == Role.EMPLOYEE,
            UserModel.is_deleted.is_(False)
        )
        if search:
            stmt = stmt.where(UserModel.name.ilike(f"%{search.strip()}%"))
        stmt = stmt.order_by(UserModel.name.asc())

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def exists_with_role(self, role: str) -> bool:
        stmt = select(UserModel.id).where(
            UserModel.role == role,
            UserModel.is_deleted.is_(False)
        ).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

"""
Accounts Infrastructure Models
===============================

SQLAlchemy ORM model for user accounts.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Boolean, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from quixdesk.infrastructure.database import Base, UTCDateTime, utcnow
from quixdesk.config import Role


class UserModel(Base):
    """
    Database model for an account.

    Maps to the 'users' table. Removal is a soft delete (`is_deleted`).
    """
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    profile_picture: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.USER, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

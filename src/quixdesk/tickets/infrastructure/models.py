"""
Tickets Infrastructure Models
==============================

SQLAlchemy ORM models for tickets and their assignments.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from quixdesk.config import Priority, TicketCategory, TicketStatus
from quixdesk.infrastructure.database import Base, UTCDateTime, utcnow


class TicketModel(Base):
    """
    Database model for a support ticket.

    Maps to the 'tickets' table. The chat handshake flags live on the
    row so both sides observe them through `ticket.updated` events.
    """
    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Submission form
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default=TicketCategory.GENERAL)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.OPEN, index=True)
    closed_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)

    # Chat session flags
    user_waiting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    employee_waiting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    chat_initiated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    employee_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Content moderation
    is_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    flag_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    overdue_alerted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class AssignmentModel(Base):
    """
    Join row linking a ticket to an employee.

    Maps to the 'assignments' table.
    """
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("ticket_id", "user_id", name="uq_assignment_ticket_user"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, index=True)

"""
Tickets Application DTOs
=========================

Request and response models for the tickets API.
"""

from datetime import datetime
from typing import Any, Iterable, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["low", "medium", "high", "critical"]
TicketStatusStr = Literal["open", "answered", "requested", "closed"]
CategoryStr = Literal[
    "technical", "system_crash", "software_bug", "connectivity_issue",
    "billing", "data_loss", "security", "general"
]


# ========== Request DTOs ==========

class TicketCreateDTO(BaseModel):
    """Ticket submission form (image travels separately as a file)."""
    name: str = Field(..., min_length=1, max_length=255, description="Contact name")
    email: EmailStr = Field(..., description="Contact email")
    category: CategoryStr = Field(default="general", description="Ticket category")
    priority: PriorityStr = Field(default="medium", description="Ticket priority")
    title: str = Field(..., min_length=1, max_length=500, description="Short summary")
    description: str = Field(..., min_length=1, description="Full problem description")

    @field_validator("name", "title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class AssignRequest(BaseModel):
    employee_id: str = Field(..., description="Employee to assign")


class TicketListQuery(BaseModel):
    """Owner list filters."""
    search: Optional[str] = None
    status: Optional[TicketStatusStr] = None
    priority: Optional[PriorityStr] = None


# ========== Response DTOs ==========

class AssignmentResponse(BaseModel):
    id: str
    ticket_id: str
    employee_id: str
    employee_name: Optional[str] = None
    assigned_at: datetime


class TicketResponse(BaseModel):
    """Full ticket view including chat flags and assignments."""
    id: str
    user_id: str
    name: str
    email: str
    category: CategoryStr
    priority: PriorityStr
    title: str
    description: str
    image_url: Optional[str] = None
    status: TicketStatusStr
    closed_by: Optional[str] = None
    closed_by_name: Optional[str] = None

    user_waiting: bool = False
    employee_waiting: bool = False
    chat_initiated: bool = False
    employee_connected: bool = False
    user_connected: bool = False

    is_flagged: bool = False
    flag_reason: Optional[str] = None
    analyzed_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    assignments: List[AssignmentResponse] = Field(default_factory=list)

    @classmethod
    def from_model(
        cls,
        ticket: Any,
        assignments: Iterable[AssignmentResponse] = (),
        closed_by_name: Optional[str] = None
    ) -> "TicketResponse":
        return cls(
            id=str(ticket.id),
            user_id=str(ticket.user_id),
            name=ticket.name,
            email=ticket.email,
            category=ticket.category,
            priority=ticket.priority,
            title=ticket.title,
            description=ticket.description,
            image_url=ticket.image_url,
            status=ticket.status,
            closed_by=str(ticket.closed_by) if ticket.closed_by else None,
            closed_by_name=closed_by_name,
            user_waiting=ticket.user_waiting,
            employee_waiting=ticket.employee_waiting,
            chat_initiated=ticket.chat_initiated,
            employee_connected=ticket.employee_connected,
            user_connected=ticket.user_connected,
            is_flagged=bool(ticket.is_flagged),
            flag_reason=ticket.flag_reason,
            analyzed_at=ticket.analyzed_at,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            first_response_at=ticket.first_response_at,
            closed_at=ticket.closed_at,
            assignments=list(assignments),
        )


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]
    total: int


class AdminBoardResponse(BaseModel):
    """Admin assignment board."""
    unassigned: List[TicketResponse]
    assigned: List[TicketResponse]


class AssignedPageResponse(BaseModel):
    """A page of the employee's assigned tickets."""
    items: List[TicketResponse]
    total: int
    page: int
    page_size: int


class TicketSearchResult(BaseModel):
    id: str
    title: str
    status: TicketStatusStr
    priority: PriorityStr
    created_at: datetime


class ModerationSummary(BaseModel):
    """Result of a moderation pass over not yet analyzed tickets."""
    analyzed: int
    flagged: int
    flagged_ids: List[str] = Field(default_factory=list)

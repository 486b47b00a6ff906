"""
Analytics Application DTOs
===========================

Response models for the admin analytics dashboard, the CSR dashboard,
profile counters and the employee roster.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from quixdesk.ratings.application.dto import FeedbackResponse


# ========== Type Aliases for Literals ==========
DateRangeStr = Literal["last7days", "last30days", "last90days"]
ExportFormatStr = Literal["csv", "json"]


# ========== Admin overview ==========

class TicketStats(BaseModel):
    total: int = 0
    new: int = Field(0, description="Created within the range")
    open: int = 0
    closed: int = 0
    urgent: int = Field(0, description="High or critical priority")
    unanswered: int = Field(0, description="Open with no first response")
    answered: int = 0
    solved: int = Field(0, description="Closed within the range")
    flagged: int = Field(0, description="Flagged by content moderation")


class NamedCount(BaseModel):
    name: str
    value: int


class TrendPoint(BaseModel):
    date: str = Field(..., description="yyyy-MM-dd")
    display: str = Field(..., description="e.g. 'May 01'")
    count: int


class RecentTicket(BaseModel):
    id: str
    title: str
    updated: datetime
    action: str
    status: str


class UserCounts(BaseModel):
    users: int = 0
    employees: int = 0
    admins: int = 0


class WorkloadEntry(BaseModel):
    id: str
    name: str
    assigned_tickets: int


class ActivityEntry(BaseModel):
    id: str
    name: str
    status: Literal["Online", "Offline"]


class OverviewResponse(BaseModel):
    date_range: DateRangeStr
    generated_at: datetime
    stats: TicketStats
    status_distribution: List[NamedCount]
    ticket_trend: List[TrendPoint]
    recent_tickets: List[RecentTicket]
    user_counts: UserCounts
    signup_trends: Dict[str, List[TrendPoint]] = Field(
        ..., description="Daily sign-ups keyed by role"
    )
    employee_workload: List[WorkloadEntry]
    employee_activity: List[ActivityEntry]


# ========== Employees ==========

class RosterEntry(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    average_rating: str = Field(..., description="One decimal place, '0.0' when unrated")
    solved_count: int


class RosterResponse(BaseModel):
    employees: List[RosterEntry]
    total: int


# ========== CSR dashboard ==========

class HourlyPoint(BaseModel):
    time: str = Field(..., description="'HH:00'")
    assigned: int
    unassigned: int


class CsrDashboardResponse(BaseModel):
    open_tickets: int
    unassigned_tickets: int
    avg_first_response_minutes: Optional[int] = Field(
        None, description="Over answered tickets created today; null without data"
    )
    sla_compliance: int = Field(..., description="100 when within the first-response target, else 0")
    csat_today: Optional[int] = Field(None, description="Share of today's ratings at 4 or 5, in percent")
    assigned_to_me: int
    hourly_chart: List[HourlyPoint]
    feedback: List[FeedbackResponse]

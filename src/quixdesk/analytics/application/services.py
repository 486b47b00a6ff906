"""
Analytics Application Services
===============================

Aggregations behind the admin analytics page, the CSR dashboard, profile
counters and the employee roster, plus CSV/JSON export.

All computation happens over plain rows returned by the repository, so
the figures are identical on PostgreSQL and SQLite.
"""

import csv
import io
import json
from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from quixdesk.analytics.application.dto import (
    ActivityEntry,
    CsrDashboardResponse,
    HourlyPoint,
    NamedCount,
    OverviewResponse,
    RecentTicket,
    RosterEntry,
    TicketStats,
    TrendPoint,
    UserCounts,
    WorkloadEntry,
)
from quixdesk.accounts.application.dto import ProfileStatsResponse
from quixdesk.config import (
    DATE_RANGE_DAYS,
    DateRange,
    Role,
    TicketStatus,
    URGENT_PRIORITIES,
    settings,
)
from quixdesk.core import ValidationException
from quixdesk.infrastructure.database import utcnow
from quixdesk.ratings.application.services import RatingService, format_average
from quixdesk.realtime.connection_manager import ConnectionManager
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IAnalyticsRepository(ABC):
    """Read-only queries for analytics."""

    @abstractmethod
    async def list_tickets(self) -> List[Any]:
        """All tickets, newest first."""

    @abstractmethod
    async def list_users(self) -> List[Any]:
        """All non-deleted users."""

    @abstractmethod
    async def list_assignments(self, since: Optional[datetime] = None) -> List[Any]:
        """Assignments, optionally only those made at or after since."""

    @abstractmethod
    async def list_ratings(self, since: Optional[datetime] = None) -> List[Any]:
        """Ratings, optionally only those given at or after since."""

    @abstractmethod
    async def count_tickets(
        self,
        owner_id: Optional[str] = None,
        status: Optional[str] = None,
        closed_by: Optional[str] = None
    ) -> int:
        """Number of tickets matching every given filter."""

    @abstractmethod
    async def count_users(self, role: Optional[str] = None) -> int:
        """Non-deleted users, optionally of one role."""

    @abstractmethod
    async def count_assignments(self, employee_id: str) -> int:
        """Assignments held by the employee."""


# ========== Helpers ==========

def range_start(date_range: str, now: datetime) -> datetime:
    """Midnight UTC of the first day in the window."""
    if date_range not in DATE_RANGE_DAYS:
        raise ValidationException(
            f"Unknown date range '{date_range}'",
            {"allowed": list(DATE_RANGE_DAYS)}
        )
    first_day = now.date() - timedelta(days=DATE_RANGE_DAYS[date_range])
    return datetime.combine(first_day, datetime.min.time(), tzinfo=timezone.utc)


def daily_trend(timestamps: Iterable[datetime], start: datetime, now: datetime) -> List[TrendPoint]:
    """Counts per UTC day from start to now, missing days filled with zero."""
    counts = Counter(ts.astimezone(timezone.utc).date() for ts in timestamps if ts >= start)

    points = []
    day: date = start.date()
    while day <= now.date():
        points.append(TrendPoint(
            date=day.strftime("%Y-%m-%d"),
            display=day.strftime("%b %d"),
            count=counts.get(day, 0)
        ))
        day += timedelta(days=1)
    return points


def _recent_action(ticket: Any) -> str:
    if ticket.status == TicketStatus.CLOSED:
        return "Closed"
    if ticket.first_response_at is not None:
        return "Answered"
    return "Open"


# ========== Services ==========

class AnalyticsService:
    """Dashboards and reports."""

    def __init__(
        self,
        repo: IAnalyticsRepository,
        ratings: Optional[RatingService] = None,
        presence: Optional[ConnectionManager] = None
    ):
        self._repo = repo
        self._ratings = ratings
        self._presence = presence

    # ---------- Profile & roster ----------

    async def profile_stats(self, user: Any) -> ProfileStatsResponse:
        """Role-specific counters for the profile page."""
        if user.role == Role.ADMIN:
            stats = {
                "total_tickets": await self._repo.count_tickets(),
                "total_users": await self._repo.count_users(),
                "total_employees": await self._repo.count_users(role=Role.EMPLOYEE),
            }
        elif user.role == Role.EMPLOYEE:
            stats = {
                "open_tickets": await self._repo.count_tickets(status=TicketStatus.OPEN),
                "assigned_tickets": await self._repo.count_assignments(str(user.id)),
                "closed_by_me": await self._repo.count_tickets(
                    status=TicketStatus.CLOSED, closed_by=str(user.id)
                ),
            }
        else:
            owner_id = str(user.id)
            stats = {
                status: await self._repo.count_tickets(owner_id=owner_id, status=status)
                for status in (TicketStatus.OPEN, TicketStatus.CLOSED, TicketStatus.ANSWERED)
            }
        return ProfileStatsResponse(role=user.role, stats=stats)

    async def employee_roster(self) -> List[RosterEntry]:
        employees = [u for u in await self._repo.list_users() if u.role == Role.EMPLOYEE]

        ratings_by_employee: Dict[str, List[int]] = defaultdict(list)
        for rating in await self._repo.list_ratings():
            ratings_by_employee[str(rating.employee_id)].append(rating.rating)

        solved = Counter(
            str(t.closed_by)
            for t in await self._repo.list_tickets()
            if t.status == TicketStatus.CLOSED and t.closed_by is not None
        )

        return [
            RosterEntry(
                id=str(e.id),
                name=e.name,
                email=e.email,
                phone=e.phone,
                profile_picture=e.profile_picture,
                average_rating=format_average(ratings_by_employee.get(str(e.id), [])),
                solved_count=solved.get(str(e.id), 0)
            )
            for e in sorted(employees, key=lambda e: e.name.lower())
        ]

    # ---------- Admin overview ----------

    async def admin_overview(
        self,
        date_range: str = DateRange.LAST_30_DAYS,
        now: Optional[datetime] = None
    ) -> OverviewResponse:
        now = now or utcnow()
        start = range_start(date_range, now)

        tickets = await self._repo.list_tickets()
        users = await self._repo.list_users()

        stats = TicketStats(
            total=len(tickets),
            new=sum(1 for t in tickets if t.created_at >= start),
            open=sum(1 for t in tickets if t.status == TicketStatus.OPEN),
            closed=sum(1 for t in tickets if t.status == TicketStatus.CLOSED),
            urgent=sum(1 for t in tickets if t.priority in URGENT_PRIORITIES),
            unanswered=sum(
                1 for t in tickets
                if t.status == TicketStatus.OPEN and t.first_response_at is None
            ),
            answered=sum(1 for t in tickets if t.status == TicketStatus.ANSWERED),
            solved=sum(
                1 for t in tickets
                if t.status == TicketStatus.CLOSED and t.closed_at is not None and t.closed_at >= start
            ),
            flagged=sum(1 for t in tickets if t.is_flagged),
        )

        status_counts = Counter(t.status for t in tickets)
        distribution = [
            NamedCount(name=status.capitalize(), value=count)
            for status, count in status_counts.items()
        ]

        recent = [
            RecentTicket(
                id=str(t.id),
                title=t.title,
                updated=t.updated_at or t.created_at,
                action=_recent_action(t),
                status=t.status.capitalize()
            )
            for t in tickets[:10]
        ]

        by_role: Dict[str, List[Any]] = defaultdict(list)
        for user in users:
            by_role[user.role].append(user)

        employees = by_role.get(Role.EMPLOYEE, [])
        assignments = await self._repo.list_assignments(since=start)
        per_employee = Counter(str(a.user_id) for a in assignments)
        workload = sorted(
            (
                WorkloadEntry(id=str(e.id), name=e.name, assigned_tickets=per_employee.get(str(e.id), 0))
                for e in employees
            ),
            key=lambda w: w.assigned_tickets,
            reverse=True
        )

        activity = [
            ActivityEntry(
                id=str(e.id),
                name=e.name,
                status="Online" if self._presence and self._presence.is_user_online(str(e.id)) else "Offline"
            )
            for e in employees
        ]

        return OverviewResponse(
            date_range=date_range,
            generated_at=now,
            stats=stats,
            status_distribution=distribution,
            ticket_trend=daily_trend((t.created_at for t in tickets), start, now),
            recent_tickets=recent,
            user_counts=UserCounts(
                users=len(by_role.get(Role.USER, [])),
                employees=len(employees),
                admins=len(by_role.get(Role.ADMIN, [])),
            ),
            signup_trends={
                role: daily_trend((u.created_at for u in by_role.get(role, [])), start, now)
                for role in (Role.USER, Role.EMPLOYEE, Role.ADMIN)
            },
            employee_workload=workload,
            employee_activity=activity,
        )

    async def export(
        self,
        date_range: str = DateRange.LAST_30_DAYS,
        fmt: str = "csv",
        now: Optional[datetime] = None
    ) -> Tuple[str, str, str]:
        """
        Render the overview as a downloadable report.

        Returns:
            (body, media type, file name)
        """
        overview = await self.admin_overview(date_range, now=now)
        stamp = overview.generated_at.strftime("%Y-%m-%d")

        if fmt == "json":
            body = json.dumps(overview.model_dump(mode="json"), indent=2, ensure_ascii=False)
            return body, "application/json", f"analytics-{date_range}-{stamp}.json"
        if fmt == "csv":
            return _render_csv(overview), "text/csv", f"analytics-{date_range}-{stamp}.csv"

        raise ValidationException(f"Unsupported export format '{fmt}'", {"allowed": ["csv", "json"]})

    # ---------- CSR dashboard ----------

    async def csr_dashboard(self, employee: Any, now: Optional[datetime] = None) -> CsrDashboardResponse:
        now = now or utcnow()
        today = datetime.combine(now.date(), datetime.min.time(), tzinfo=timezone.utc)

        tickets = await self._repo.list_tickets()
        assigned_ids = {str(a.ticket_id) for a in await self._repo.list_assignments()}

        open_tickets = [t for t in tickets if t.status == TicketStatus.OPEN]
        unassigned = sum(1 for t in open_tickets if str(t.id) not in assigned_ids)

        answered_today = [
            t for t in tickets
            if t.status == TicketStatus.ANSWERED
            and t.created_at >= today
            and t.first_response_at is not None
        ]
        avg_minutes = None
        if answered_today:
            total_seconds = sum(
                (t.first_response_at - t.created_at).total_seconds() for t in answered_today
            )
            avg_minutes = round(total_seconds / len(answered_today) / 60)
        within_target = avg_minutes is not None and avg_minutes <= settings.first_response_target_minutes

        todays_ratings = await self._repo.list_ratings(since=today)
        csat = None
        if todays_ratings:
            satisfied = sum(1 for r in todays_ratings if r.rating >= 4)
            csat = round(satisfied * 100 / len(todays_ratings))

        hourly = []
        for hour in range(24):
            in_hour = [t for t in tickets if t.created_at.astimezone(timezone.utc).hour == hour]
            assigned = sum(1 for t in in_hour if str(t.id) in assigned_ids)
            hourly.append(HourlyPoint(
                time=f"{hour:02d}:00",
                assigned=assigned,
                unassigned=len(in_hour) - assigned
            ))

        feedback = []
        if self._ratings is not None:
            feedback = await self._ratings.feedback_for(str(employee.id))

        return CsrDashboardResponse(
            open_tickets=len(open_tickets),
            unassigned_tickets=unassigned,
            avg_first_response_minutes=avg_minutes,
            sla_compliance=100 if within_target else 0,
            csat_today=csat,
            assigned_to_me=await self._repo.count_assignments(str(employee.id)),
            hourly_chart=hourly,
            feedback=feedback,
        )


def _render_csv(overview: OverviewResponse) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    stats = overview.stats
    total = stats.total or 1
    label = overview.date_range.replace("last", "Last ").replace("days", " Days")

    writer.writerow(["Support System Analytics Report"])
    writer.writerow(["Generated on", overview.generated_at.strftime("%Y-%m-%d %H:%M UTC")])
    writer.writerow(["Date Range", label])
    writer.writerow([])

    writer.writerow(["Summary Statistics"])
    writer.writerow(["Metric", "Count"])
    for name, value in (
        ("Total Tickets", stats.total),
        ("New Tickets", stats.new),
        ("Open Tickets", stats.open),
        ("Closed Tickets", stats.closed),
        ("Urgent Tickets", stats.urgent),
        ("Unanswered Tickets", stats.unanswered),
        ("Answered Tickets", stats.answered),
        ("Solved Tickets", stats.solved),
        ("Flagged Tickets", stats.flagged),
        ("Total Users", overview.user_counts.users),
        ("Total Employees", overview.user_counts.employees),
        ("Total Admins", overview.user_counts.admins),
    ):
        writer.writerow([name, value])
    writer.writerow([])

    writer.writerow(["Ticket Status Breakdown"])
    writer.writerow(["Status", "Count", "Percentage"])
    for item in overview.status_distribution:
        writer.writerow([item.name, item.value, f"{item.value / total * 100:.1f}%"])
    writer.writerow([])

    writer.writerow(["Employee Workload"])
    writer.writerow(["Employee Name", "Assigned Tickets"])
    for entry in overview.employee_workload:
        writer.writerow([entry.name, entry.assigned_tickets])
    writer.writerow([])

    writer.writerow(["Ticket Trends"])
    writer.writerow(["Date", "Ticket Count"])
    for point in overview.ticket_trend:
        writer.writerow([point.display, point.count])

    return buffer.getvalue()

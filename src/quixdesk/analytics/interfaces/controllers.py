"""
Analytics Controllers (API Routes)
===================================

FastAPI routes for dashboards, reports, profile counters and the
employee roster.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.application.dto import ProfileStatsResponse
from quixdesk.accounts.interfaces.dependencies import get_current_user, require_roles
from quixdesk.analytics.application.dto import (
    CsrDashboardResponse,
    DateRangeStr,
    ExportFormatStr,
    OverviewResponse,
    RosterResponse,
)
from quixdesk.analytics.application.services import AnalyticsService
from quixdesk.analytics.infrastructure.repositories import SQLAlchemyAnalyticsRepository
from quixdesk.config import Role
from quixdesk.infrastructure.database import get_session
from quixdesk.ratings.interfaces.controllers import get_rating_service
from quixdesk.ratings.application.services import RatingService

router = APIRouter(tags=["Analytics"])


def get_analytics_service(
    request: Request,
    db: AsyncSession = Depends(get_session),
    ratings: RatingService = Depends(get_rating_service)
) -> AnalyticsService:
    return AnalyticsService(
        SQLAlchemyAnalyticsRepository(db),
        ratings=ratings,
        presence=request.app.state.event_publisher.manager,
    )


@router.get("/profile/stats", response_model=ProfileStatsResponse, summary="Profile counters for my role")
async def profile_stats(
    user: Any = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service)
):
    return await service.profile_stats(user)


@router.get(
    "/analytics/overview",
    response_model=OverviewResponse,
    summary="Admin analytics overview",
    description="""
    Ticket statistics, status distribution, daily trends, recent tickets,
    user counts, sign-up trends and employee workload for the window.

    **Example `stats`**:
    ```json
    {"total": 43, "new": 10, "open": 17, "closed": 18, "urgent": 11,
     "unanswered": 6, "answered": 5, "solved": 9}
    ```
    """,
)
async def admin_overview(
    date_range: DateRangeStr = Query("last30days"),
    _admin: Any = Depends(require_roles(Role.ADMIN)),
    service: AnalyticsService = Depends(get_analytics_service)
):
    return await service.admin_overview(date_range)


@router.get(
    "/analytics/export",
    summary="Download the analytics report",
    response_class=Response,
    responses={
        200: {
            "description": "Report file",
            "content": {"text/csv": {}, "application/json": {}}
        }
    }
)
async def export_report(
    date_range: DateRangeStr = Query("last30days"),
    fmt: ExportFormatStr = Query("csv", alias="format"),
    _admin: Any = Depends(require_roles(Role.ADMIN)),
    service: AnalyticsService = Depends(get_analytics_service)
):
    body, media_type, filename = await service.export(date_range, fmt)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get(
    "/analytics/employees",
    response_model=RosterResponse,
    summary="Employee roster",
    description="Every active employee with average rating and solved ticket count."
)
async def employee_roster(
    _admin: Any = Depends(require_roles(Role.ADMIN)),
    service: AnalyticsService = Depends(get_analytics_service)
):
    roster = await service.employee_roster()
    return RosterResponse(employees=roster, total=len(roster))


@router.get("/analytics/csr", response_model=CsrDashboardResponse, summary="CSR dashboard")
async def csr_dashboard(
    employee: Any = Depends(require_roles(Role.EMPLOYEE, Role.ADMIN)),
    service: AnalyticsService = Depends(get_analytics_service)
):
    return await service.csr_dashboard(employee)


analytics_router = router

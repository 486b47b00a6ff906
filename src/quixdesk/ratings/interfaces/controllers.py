"""
Ratings Controllers (API Routes)
=================================
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.accounts.interfaces.dependencies import get_current_user, require_roles
from quixdesk.config import Role
from quixdesk.infrastructure.database import get_session
from quixdesk.ratings.application.dto import (
    FeedbackListResponse,
    FeedbackResponse,
    PendingRatingResponse,
    RatingRequest,
)
from quixdesk.ratings.application.services import RatingService, format_average
from quixdesk.ratings.infrastructure.repositories import SQLAlchemyRatingRepository
from quixdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyTicketRepository,
)

router = APIRouter(tags=["Ratings"])


def get_rating_service(db: AsyncSession = Depends(get_session)) -> RatingService:
    return RatingService(
        SQLAlchemyRatingRepository(db),
        SQLAlchemyTicketRepository(db),
        SQLAlchemyAssignmentRepository(db),
        SQLAlchemyUserRepository(db),
    )


def _feedback_list(feedback) -> FeedbackListResponse:
    return FeedbackListResponse(
        feedback=feedback,
        total=len(feedback),
        average_rating=format_average(f.rating for f in feedback)
    )


@router.post(
    "/tickets/{ticket_id}/rating",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Rate the employee who handled a closed ticket",
    responses={
        409: {"description": "Ticket already rated"},
        422: {"description": "Ticket not closed or never assigned"},
    }
)
async def rate_ticket(
    ticket_id: str,
    payload: RatingRequest,
    user: Any = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    return await service.rate(ticket_id, user, payload)


@router.get(
    "/ratings/pending",
    response_model=Optional[PendingRatingResponse],
    summary="Next ticket awaiting my rating",
    description="The first closed ticket the caller has not rated yet, or null."
)
async def pending_rating(
    user: Any = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    return await service.pending_rating(user)


@router.get("/ratings/me", response_model=FeedbackListResponse, summary="Feedback about me")
async def my_feedback(
    employee: Any = Depends(require_roles(Role.EMPLOYEE)),
    service: RatingService = Depends(get_rating_service)
):
    return _feedback_list(await service.feedback_for(str(employee.id)))


@router.get("/ratings/employees/{employee_id}", response_model=FeedbackListResponse, summary="Feedback about an employee")
async def employee_feedback(
    employee_id: str,
    _admin: Any = Depends(require_roles(Role.ADMIN)),
    service: RatingService = Depends(get_rating_service)
):
    return _feedback_list(await service.feedback_for(employee_id))


ratings_router = router

"""
Tickets Controllers (API Routes)
=================================

FastAPI routes for ticket submission, listing, assignment, the closure
workflow and the chat session handshake.

Controllers delegate to application services.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.accounts.interfaces.dependencies import get_current_user, require_roles
from quixdesk.config import Role
from quixdesk.infrastructure.database import get_session
from quixdesk.shared.infrastructure.logging import get_logger
from quixdesk.tickets.application.dto import (
    AdminBoardResponse,
    AssignRequest,
    AssignedPageResponse,
    ModerationSummary,
    PriorityStr,
    TicketCreateDTO,
    TicketListQuery,
    TicketListResponse,
    TicketResponse,
    TicketSearchResult,
    TicketStatusStr,
)
from quixdesk.tickets.application.services import TicketService
from quixdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyTicketRepository,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])

staff_only = require_roles(Role.EMPLOYEE, Role.ADMIN)
employee_only = require_roles(Role.EMPLOYEE)
admin_only = require_roles(Role.ADMIN)


# ========== Example payloads for Swagger ==========

TICKET_RESPONSE_EXAMPLE = {
    "id": "9b2e4c1a-6f0d-4a8e-9d53-2f7c8b1e0a44",
    "user_id": "123e4567-e89b-12d3-a456-426614174000",
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "category": "connectivity_issue",
    "priority": "high",
    "title": "VPN drops every few minutes",
    "description": "Since this morning the VPN disconnects roughly every five minutes.",
    "image_url": None,
    "status": "answered",
    "closed_by": None,
    "closed_by_name": None,
    "user_waiting": False,
    "employee_waiting": True,
    "chat_initiated": True,
    "employee_connected": True,
    "user_connected": False,
    "created_at": "2024-05-01T09:30:00Z",
    "updated_at": "2024-05-01T09:41:12Z",
    "first_response_at": "2024-05-01T09:41:12Z",
    "closed_at": None,
    "is_flagged": False,
    "flag_reason": None,
    "analyzed_at": "2024-05-01T09:30:00Z",
    "assignments": [
        {
            "id": "5d1c2b7e-0c9f-4f58-8a7e-1b2d3c4e5f60",
            "ticket_id": "9b2e4c1a-6f0d-4a8e-9d53-2f7c8b1e0a44",
            "employee_id": "2a3b4c5d-6e7f-4081-9a2b-3c4d5e6f7a8b",
            "employee_name": "Grace Hopper",
            "assigned_at": "2024-05-01T09:35:00Z"
        }
    ]
}


# ========== Dependencies ==========

def get_ticket_service(
    request: Request,
    db: AsyncSession = Depends(get_session)
) -> TicketService:
    """Ticket service bound to the request's session and shared clients."""
    state = request.app.state
    return TicketService(
        SQLAlchemyTicketRepository(db),
        SQLAlchemyAssignmentRepository(db),
        SQLAlchemyUserRepository(db),
        publisher=state.event_publisher,
        notifier=state.email_notifier,
        media=state.media_uploader,
    )


# ========== Submission & owner views ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a ticket",
    description="""
    Submit a support ticket as a multipart form with an optional image.

    If the image cannot be uploaded the ticket is still created, without
    an image. A confirmation email is sent and admins receive a
    `ticket.created` event.
    """,
    responses={
        201: {
            "description": "Ticket created",
            "content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}
        }
    }
)
async def submit_ticket(
    name: str = Form(...),
    email: str = Form(...),
    category: str = Form("general"),
    priority: str = Form("medium"),
    title: str = Form(...),
    description: str = Form(...),
    image: Optional[UploadFile] = File(None),
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    try:
        form = TicketCreateDTO(
            name=name,
            email=email,
            category=category,
            priority=priority,
            title=title,
            description=description
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    upload = None
    if image is not None and image.filename:
        upload = (image.filename, await image.read(), image.content_type or "")

    return await service.submit(user, form, upload)


@router.get("", response_model=TicketListResponse, summary="List own tickets")
async def list_my_tickets(
    search: Optional[str] = Query(None, description="Matches title, id, status or employee name"),
    status_filter: Optional[TicketStatusStr] = Query(None, alias="status"),
    priority: Optional[PriorityStr] = Query(None),
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_for_user(
        user, TicketListQuery(search=search, status=status_filter, priority=priority)
    )
    return TicketListResponse(tickets=tickets, total=len(tickets))


@router.get("/closed", response_model=TicketListResponse, summary="List own closed tickets")
async def list_my_closed_tickets(
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_closed_for_user(user)
    return TicketListResponse(tickets=tickets, total=len(tickets))


# ========== Staff views ==========

@router.get(
    "/search",
    response_model=List[TicketSearchResult],
    summary="Search tickets",
    description="Case-insensitive title match or exact ticket id, newest first, at most 10 results."
)
async def search_tickets(
    q: str = Query(..., min_length=1),
    _staff: Any = Depends(staff_only),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.search(q)
    return [
        TicketSearchResult(
            id=str(t.id),
            title=t.title,
            status=t.status,
            priority=t.priority,
            created_at=t.created_at
        )
        for t in tickets
    ]


@router.get("/assigned", response_model=AssignedPageResponse, summary="Tickets assigned to me")
async def list_assigned_tickets(
    search: Optional[str] = Query(None, description="Title contains"),
    status_filter: Optional[TicketStatusStr] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    employee: Any = Depends(employee_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.list_assigned(employee, search, status_filter, page, page_size)


@router.get(
    "/chat-requests",
    response_model=TicketListResponse,
    summary="Chat queue",
    description="Open tickets assigned to me, customers waiting for a chat first."
)
async def list_chat_requests(
    employee: Any = Depends(employee_only),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_chat_requests(employee)
    return TicketListResponse(tickets=tickets, total=len(tickets))


@router.get("/board", response_model=AdminBoardResponse, summary="Admin assignment board")
async def admin_board(
    search: Optional[str] = Query(None),
    _admin: Any = Depends(admin_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.admin_board(search)


# ========== Moderation (admin) ==========

@router.get(
    "/flagged",
    response_model=TicketListResponse,
    summary="Flagged tickets",
    description="Tickets whose title or description matched the moderation word list, newest first."
)
async def list_flagged_tickets(
    _admin: Any = Depends(admin_only),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_flagged()
    return TicketListResponse(tickets=tickets, total=len(tickets))


@router.post(
    "/moderation/run",
    response_model=ModerationSummary,
    summary="Moderate unanalyzed tickets",
    description="""
    Check every ticket that has not been analyzed yet against the
    moderation word list and store `is_flagged`, `flag_reason` and
    `analyzed_at`. New submissions are analyzed when filed.
    """
)
async def run_moderation(
    admin: Any = Depends(admin_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.moderate_pending(admin)


# ========== Single ticket ==========

@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get a ticket",
    responses={403: {"description": "Not the owner, an assignee or an admin"}}
)
async def get_ticket(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.get(ticket_id, user)


@router.delete(
    "/{ticket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a ticket",
    description="Owners may delete their own tickets; admins may delete any ticket.",
    responses={403: {"description": "Neither the owner nor an admin"}}
)
async def delete_ticket(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    await service.delete(ticket_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketResponse,
    summary="Assign an employee",
    responses={409: {"description": "Already assigned to this employee, or ticket closed"}}
)
async def assign_ticket(
    ticket_id: str,
    payload: AssignRequest,
    admin: Any = Depends(admin_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.assign(ticket_id, payload.employee_id, admin)


# ========== Closure workflow ==========

@router.post("/{ticket_id}/request-closure", response_model=TicketResponse, summary="Ask the owner to confirm closure")
async def request_closure(
    ticket_id: str,
    actor: Any = Depends(staff_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.request_closure(ticket_id, actor)


@router.post("/{ticket_id}/confirm-closure", response_model=TicketResponse, summary="Confirm a closure request")
async def confirm_closure(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.confirm_closure(ticket_id, user)


@router.post("/{ticket_id}/close", response_model=TicketResponse, summary="Close a ticket")
async def close_ticket(
    ticket_id: str,
    actor: Any = Depends(staff_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.close(ticket_id, actor)


# ========== Chat session handshake ==========

@router.post("/{ticket_id}/chat/request", response_model=TicketResponse, summary="Ask for a live chat")
async def request_chat(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.request_chat(ticket_id, user)


@router.post("/{ticket_id}/chat/cancel", response_model=TicketResponse, summary="Withdraw a chat request")
async def cancel_chat_request(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.cancel_chat_request(ticket_id, user)


@router.post("/{ticket_id}/chat/connect", response_model=TicketResponse, summary="Pick up the chat")
async def connect_employee(
    ticket_id: str,
    actor: Any = Depends(staff_only),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.connect_employee(ticket_id, actor)


@router.post("/{ticket_id}/chat/join", response_model=TicketResponse, summary="Join the chat")
async def join_chat(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.join_chat(ticket_id, user)


@router.post("/{ticket_id}/chat/end", response_model=TicketResponse, summary="End the chat")
async def end_chat(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return await service.end_chat(ticket_id, user)


tickets_router = router

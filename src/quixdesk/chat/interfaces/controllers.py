"""
Chat Controllers (API Routes)
==============================

FastAPI routes for ticket chat messages, read receipts, reactions and
typing indicators. Live delivery happens over the WebSocket.
"""

from typing import Any

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.application.dto import UserResponse
from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.accounts.interfaces.dependencies import get_current_user
from quixdesk.chat.application.dto import (
    CounterpartResponse,
    ImageUploadResponse,
    MessageCreateRequest,
    MessageListResponse,
    MessageResponse,
    ReactionRequest,
    ReadReceiptResponse,
    TypingRequest,
)
from quixdesk.chat.application.services import ChatService
from quixdesk.chat.infrastructure.repositories import SQLAlchemyMessageRepository
from quixdesk.infrastructure.database import get_session
from quixdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyTicketRepository,
)

router = APIRouter(tags=["Chat"])


MESSAGE_RESPONSE_EXAMPLE = {
    "id": "0f1e2d3c-4b5a-4968-8776-655443322110",
    "ticket_id": "9b2e4c1a-6f0d-4a8e-9d53-2f7c8b1e0a44",
    "sender_id": "2a3b4c5d-6e7f-4081-9a2b-3c4d5e6f7a8b",
    "content": "Could you try reconnecting with the new profile I just pushed?",
    "image_url": None,
    "reaction": "👍",
    "created_at": "2024-05-01T09:42:03Z",
    "read_at": None
}


# ========== Dependencies ==========

def get_chat_service(
    request: Request,
    db: AsyncSession = Depends(get_session)
) -> ChatService:
    state = request.app.state
    return ChatService(
        SQLAlchemyMessageRepository(db),
        SQLAlchemyTicketRepository(db),
        SQLAlchemyAssignmentRepository(db),
        SQLAlchemyUserRepository(db),
        publisher=state.event_publisher,
        media=state.media_uploader,
        typing=state.typing_tracker,
    )


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}/messages",
    response_model=MessageListResponse,
    summary="Chat history",
    description="All messages of the ticket, oldest first."
)
async def list_messages(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    messages = await service.list_messages(ticket_id, user)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages)
    )


@router.post(
    "/tickets/{ticket_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
    responses={
        201: {
            "description": "Message stored and broadcast as message.created",
            "content": {"application/json": {"example": MESSAGE_RESPONSE_EXAMPLE}}
        },
        409: {"description": "Ticket is closed"},
    }
)
async def send_message(
    ticket_id: str,
    payload: MessageCreateRequest,
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return await service.send(ticket_id, user, payload)


@router.post(
    "/tickets/{ticket_id}/messages/image",
    response_model=ImageUploadResponse,
    summary="Upload a chat image",
    description="Returns a hosted URL to send as the `image_url` of a message."
)
async def upload_message_image(
    ticket_id: str,
    file: UploadFile = File(...),
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    content = await file.read()
    url = await service.upload_image(
        ticket_id, user, file.filename or "upload", content, file.content_type or ""
    )
    return ImageUploadResponse(url=url)


@router.post("/tickets/{ticket_id}/messages/read", response_model=ReadReceiptResponse, summary="Mark messages read")
async def mark_messages_read(
    ticket_id: str,
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    count = await service.mark_read(ticket_id, user)
    return ReadReceiptResponse(ticket_id=ticket_id, count=count)


@router.post(
    "/tickets/{ticket_id}/typing",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Report typing",
    description="Indicators expire automatically unless refreshed."
)
async def report_typing(
    ticket_id: str,
    payload: TypingRequest,
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    await service.typing(ticket_id, user, payload.is_typing)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/tickets/{ticket_id}/counterpart", response_model=CounterpartResponse, summary="Who I am talking to")
async def get_counterpart(
    ticket_id: str,
    request: Request,
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    other = await service.counterpart(ticket_id, user)
    if other is None:
        return CounterpartResponse()
    online = request.app.state.event_publisher.manager.is_user_online(str(other.id))
    return CounterpartResponse(user=UserResponse.model_validate(other), online=online)


@router.put("/messages/{message_id}/reaction", response_model=MessageResponse, summary="React to a message")
async def react_to_message(
    message_id: str,
    payload: ReactionRequest,
    user: Any = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return await service.react(message_id, user, payload.reaction)


chat_router = router

"""
Assistant Controllers (API Routes)
===================================

FastAPI routes for QuixkyBot and text-to-speech.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from quixdesk.accounts.interfaces.dependencies import get_current_user
from quixdesk.assistant.application.dto import AskRequest, AskResponse, SpeakRequest
from quixdesk.assistant.application.services import AssistantService

router = APIRouter(prefix="/assistant", tags=["Assistant"])


ASK_RESPONSE_EXAMPLE = {
    "query": "How do I check the status of my support ticket?",
    "reply": "You can check it on the My Tickets page.",
    "relevant": True
}


def get_assistant_service(request: Request) -> AssistantService:
    state = request.app.state
    return AssistantService(llm=state.llm_client, speech=state.speech_client)


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Ask QuixkyBot",
    description="""
    Ask a question about the ticket management system.

    Questions mentioning none of ticket, project, support, issue, update or
    management receive a canned reply without calling the model. Answers
    are cut to their first sentence.
    """,
    responses={
        200: {
            "description": "Assistant reply",
            "content": {"application/json": {"example": ASK_RESPONSE_EXAMPLE}}
        }
    }
)
async def ask(
    payload: AskRequest,
    _user: Any = Depends(get_current_user),
    service: AssistantService = Depends(get_assistant_service)
):
    return await service.ask(payload.query)


@router.post(
    "/speak",
    summary="Text to speech",
    response_class=Response,
    responses={
        200: {"description": "MP3 audio", "content": {"audio/mpeg": {}}},
        502: {"description": "Speech provider failed"},
        503: {"description": "Speech provider not configured"},
    }
)
async def speak(
    payload: SpeakRequest,
    _user: Any = Depends(get_current_user),
    service: AssistantService = Depends(get_assistant_service)
):
    audio = await service.speak(payload.text)
    return Response(content=audio, media_type="audio/mpeg")


assistant_router = router

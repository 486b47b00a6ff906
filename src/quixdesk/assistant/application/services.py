"""
QuixkyBot
=========

A small help-desk assistant. Questions that are not about ticket
management get a canned reply; the rest go to the LLM and the answer is
cut to its first sentence.
"""

from typing import Optional

from quixdesk.assistant.application.dto import AskResponse
from quixdesk.config import settings
from quixdesk.core import ConfigurationException, LLMException
from quixdesk.infrastructure.llm import ILLMClient
from quixdesk.infrastructure.speech import ElevenLabsClient
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RELEVANT_KEYWORDS = ("ticket", "project", "support", "issue", "update", "management")

OFF_TOPIC_REPLY = (
    "I'm here to answer questions about our ticket management system. "
    "Please ask a relevant question."
)
EMPTY_REPLY = "I don't have an answer right now."
FAILURE_REPLY = "Sorry, something went wrong."


def is_relevant(query: str) -> bool:
    text = query.lower()
    return any(keyword in text for keyword in RELEVANT_KEYWORDS)


def first_sentence(text: str) -> str:
    """Text up to the first '. ', terminated with a single period."""
    head = text.strip().split(". ")[0]
    return head.rstrip(".") + "."


class AssistantService:
    """Answers help-desk questions and voices replies."""

    def __init__(
        self,
        llm: Optional[ILLMClient] = None,
        speech: Optional[ElevenLabsClient] = None
    ):
        self._llm = llm
        self._speech = speech

    async def ask(self, query: str) -> AskResponse:
        query = query.strip()
        if not is_relevant(query):
            return AskResponse(query=query, reply=OFF_TOPIC_REPLY, relevant=False)

        if self._llm is None:
            logger.warning("Assistant asked a question but no LLM is configured")
            return AskResponse(query=query, reply=FAILURE_REPLY, relevant=True)

        try:
            result = await self._llm.chat_completion(
                [{"role": "user", "content": query}],
                temperature=settings.assistant_temperature,
                max_tokens=settings.assistant_max_tokens,
                top_p=settings.assistant_top_p
            )
        except LLMException as e:
            logger.error("Assistant completion failed", extra={"error": e.message})
            return AskResponse(query=query, reply=FAILURE_REPLY, relevant=True)

        reply = first_sentence(result.content) if result.content.strip() else EMPTY_REPLY
        return AskResponse(query=query, reply=reply, relevant=True)

    async def speak(self, text: str) -> bytes:
        """
        Raises:
            ConfigurationException: speech is not configured
            ExternalServiceException: the speech API failed
        """
        if self._speech is None:
            raise ConfigurationException("Text-to-speech is not configured")
        return await self._speech.synthesize(text)

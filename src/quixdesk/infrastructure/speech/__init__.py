"""
Text-to-Speech
==============

ElevenLabs client that turns assistant replies into MP3 audio.
"""

from typing import Optional

from quixdesk.config import settings
from quixdesk.core import ConfigurationException, ExternalServiceException, ValidationException
from quixdesk.shared.infrastructure.http import ResilientHttpClient
from quixdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
MAX_SPEECH_CHARS = 2500


class ElevenLabsClient(ResilientHttpClient):
    """ElevenLabs text-to-speech with circuit breaker and retry logic."""

    service_name = "ElevenLabs"

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("timeout", settings.http_timeout_seconds)
        super().__init__(**kwargs)
        self._api_key = api_key if api_key is not None else settings.elevenlabs_api_key
        self._voice_id = voice_id or settings.elevenlabs_voice_id
        self._model_id = model_id or settings.elevenlabs_model_id

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def synthesize(self, text: str) -> bytes:
        """
        Render text as speech.

        Returns:
            audio/mpeg bytes

        Raises:
            ValidationException: empty or overlong text
            ConfigurationException: no API key
            ExternalServiceException: the API failed after retries
        """
        text = (text or "").strip()
        if not text:
            raise ValidationException("Nothing to speak")
        if len(text) > MAX_SPEECH_CHARS:
            raise ValidationException(f"Text exceeds {MAX_SPEECH_CHARS} characters")
        if not self.is_configured:
            raise ConfigurationException("ElevenLabs API key not configured")

        with log_latency(logger, "elevenlabs_tts", characters=len(text)):
            response = await self._post(
                ELEVENLABS_TTS_URL.format(voice_id=self._voice_id),
                headers={
                    "xi-api-key": self._api_key,
                    "Accept": "audio/mpeg",
                },
                json={
                    "text": text,
                    "model_id": self._model_id,
                    "voice_settings": {
                        "stability": settings.elevenlabs_stability,
                        "similarity_boost": settings.elevenlabs_similarity_boost,
                    },
                },
            )

        if response is None:
            raise ExternalServiceException(self.service_name, "speech synthesis failed")
        return response.content


__all__ = ["ElevenLabsClient", "ELEVENLABS_TTS_URL"]

"""Tests for the outbound HTTP integrations."""

import json
import time

import httpx
import pytest

from quixdesk.core import ConfigurationException, ExternalServiceException, ValidationException
from quixdesk.infrastructure.mail import EmailNotifier
from quixdesk.infrastructure.media import CloudinaryUploader
from quixdesk.infrastructure.speech import ElevenLabsClient
from quixdesk.shared.infrastructure.http import CircuitBreaker, CircuitState


class Recorder:
    """httpx handler that records requests and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def transport(self):
        return httpx.MockTransport(self)


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60, name="test")
        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.01, name="test")
        breaker.record_failure()
        time.sleep(0.02)
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

        time.sleep(0.02)
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


class TestEmailNotifier:

    async def test_payload_shapes(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        notifier = EmailNotifier(endpoint="https://mail.example.com/send", transport=recorder.transport)

        assert await notifier.ticket_submitted("Ada", "ada@example.com", "VPN")
        assert await notifier.ticket_assigned("Ada", "ada@example.com", "VPN", "Grace")
        assert await notifier.ticket_closed("t1", "", "ada@example.com", "")
        assert await notifier.password_reset("Ada", "ada@example.com", "https://desk.example.com/reset?token=abc")

        bodies = [json.loads(r.content) for r in recorder.requests]
        assert bodies[0] == {"ticket": {"name": "Ada", "email": "ada@example.com", "title": "VPN"}}
        assert bodies[1]["ticket"]["assignedEmployee"] == "Grace"
        assert bodies[2] == {"ticket": {
            "id": "t1", "name": "Customer", "email": "ada@example.com",
            "title": "Support Ticket", "closed": True,
        }}
        assert bodies[3] == {"passwordReset": {
            "name": "Ada", "email": "ada@example.com", "resetLink": "https://desk.example.com/reset?token=abc",
        }}
        await notifier.close()

    async def test_no_endpoint_skips(self):
        recorder = Recorder(httpx.Response(200))
        notifier = EmailNotifier(endpoint="", transport=recorder.transport)
        assert await notifier.ticket_submitted("Ada", "ada@example.com", "VPN") is False
        assert recorder.requests == []

    async def test_client_error_not_retried(self):
        recorder = Recorder(httpx.Response(400))
        notifier = EmailNotifier(
            endpoint="https://mail.example.com/send", transport=recorder.transport, backoff_base=0
        )
        assert await notifier.ticket_submitted("Ada", "ada@example.com", "VPN") is False
        assert len(recorder.requests) == 1

    async def test_server_errors_retried_then_trip_circuit(self):
        recorder = Recorder(httpx.Response(503))
        notifier = EmailNotifier(
            endpoint="https://mail.example.com/send",
            transport=recorder.transport,
            max_retries=3,
            backoff_base=0,
        )
        assert await notifier.ticket_submitted("Ada", "ada@example.com", "VPN") is False
        assert len(recorder.requests) == 3

        for _ in range(4):
            await notifier.ticket_submitted("Ada", "ada@example.com", "VPN")
        assert notifier.circuit_breaker.state == CircuitState.OPEN

        sent = len(recorder.requests)
        assert await notifier.ticket_submitted("Ada", "ada@example.com", "VPN") is False
        assert len(recorder.requests) == sent

    async def test_recovers_after_transport_error(self):
        recorder = Recorder(httpx.ConnectError("refused"), httpx.Response(202))
        notifier = EmailNotifier(
            endpoint="https://mail.example.com/send", transport=recorder.transport, backoff_base=0
        )
        assert await notifier.ticket_submitted("Ada", "ada@example.com", "VPN") is True
        assert len(recorder.requests) == 2


class TestCloudinaryUploader:

    async def test_upload_returns_secure_url(self):
        recorder = Recorder(httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/x.png"}))
        uploader = CloudinaryUploader("demo", "unsigned", transport=recorder.transport)

        url = await uploader.upload("x.png", b"\x89PNG", "image/png")
        assert url == "https://res.cloudinary.com/x.png"

        request = recorder.requests[0]
        assert str(request.url) == "https://api.cloudinary.com/v1_1/demo/image/upload"
        assert b"unsigned" in request.content
        assert b"x.png" in request.content

    async def test_unconfigured(self):
        uploader = CloudinaryUploader("", "")
        with pytest.raises(ConfigurationException):
            await uploader.upload("x.png", b"\x89PNG", "image/png")

    async def test_rejects_non_image(self):
        uploader = CloudinaryUploader("demo", "unsigned")
        with pytest.raises(ValidationException):
            await uploader.upload("notes.txt", b"hello", "text/plain")

    async def test_bad_response(self):
        recorder = Recorder(httpx.Response(200, json={"error": "nope"}))
        uploader = CloudinaryUploader("demo", "unsigned", transport=recorder.transport)
        with pytest.raises(ExternalServiceException):
            await uploader.upload("x.png", b"\x89PNG", "image/png")

    async def test_failed_upload(self):
        recorder = Recorder(httpx.Response(401))
        uploader = CloudinaryUploader("demo", "unsigned", transport=recorder.transport)
        with pytest.raises(ExternalServiceException):
            await uploader.upload("x.png", b"\x89PNG", "image/png")


class TestElevenLabsClient:

    async def test_synthesize(self):
        recorder = Recorder(httpx.Response(200, content=b"ID3audio"))
        client = ElevenLabsClient("key-123", "voice-1", "model-1", transport=recorder.transport)

        audio = await client.synthesize("  Your ticket is closed.  ")
        assert audio == b"ID3audio"

        request = recorder.requests[0]
        assert str(request.url) == "https://api.elevenlabs.io/v1/text-to-speech/voice-1"
        assert request.headers["xi-api-key"] == "key-123"
        assert request.headers["accept"] == "audio/mpeg"
        body = json.loads(request.content)
        assert body["text"] == "Your ticket is closed."
        assert body["model_id"] == "model-1"
        assert set(body["voice_settings"]) == {"stability", "similarity_boost"}

    @pytest.mark.parametrize("text", ["", "   ", "x" * 2501])
    async def test_rejects_bad_text(self, text):
        client = ElevenLabsClient("key-123")
        with pytest.raises(ValidationException):
            await client.synthesize(text)

    async def test_requires_key(self):
        with pytest.raises(ConfigurationException):
            await ElevenLabsClient("").synthesize("hello")

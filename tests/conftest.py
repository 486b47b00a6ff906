"""Pytest configuration and fixtures for the QuixDesk test suite."""

import os

# Settings are read at import time; configure the test environment first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "development"
os.environ["JWT_SECRET"] = "test-secret-key-with-at-least-32-bytes!"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["MOCK_LLM"] = "true"
os.environ["RESPONSE_WATCH_ENABLED"] = "false"
os.environ["EMAIL_SERVICE_URL"] = ""
os.environ["CLOUDINARY_CLOUD_NAME"] = ""
os.environ["CLOUDINARY_UPLOAD_PRESET"] = ""
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["MISTRAL_API_KEY"] = ""

from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.accounts.infrastructure.security import PasswordHasher
from quixdesk.config import Role
from quixdesk.core import ExternalServiceException
from quixdesk.infrastructure.database import build_engine, build_session_maker, create_tables
from quixdesk.infrastructure.mail import NotificationDispatcher
from quixdesk.infrastructure.media import IMediaUploader, validate_image
from quixdesk.realtime.connection_manager import ConnectionManager
from quixdesk.realtime.events import EventType
from quixdesk.realtime.publisher import EventPublisher

TEST_PASSWORD = "Secret1!"


# =============================================================================
# TEST DOUBLES
# =============================================================================

class RecordingPublisher(EventPublisher):
    """EventPublisher that remembers every event it was asked to publish."""

    def __init__(self):
        super().__init__(ConnectionManager())
        self.events: List[Dict[str, Any]] = []

    async def publish(self, event_type, data, ticket_id=None, user_ids=(), roles=()):
        self.events.append({
            "type": event_type,
            "data": data,
            "ticket_id": ticket_id,
            "user_ids": [str(u) for u in user_ids],
            "roles": list(roles),
        })
        return await super().publish(event_type, data, ticket_id=ticket_id, user_ids=user_ids, roles=roles)

    async def typing(self, ticket_id, user_id, is_typing):
        self.events.append({
            "type": EventType.TYPING,
            "data": {"ticket_id": ticket_id, "user_id": user_id, "is_typing": is_typing},
            "ticket_id": ticket_id,
            "user_ids": [],
            "roles": [],
        })
        return await super().typing(ticket_id, user_id, is_typing)

    def of_type(self, event_type: EventType) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]


class RecordingNotifier:
    """Stands in for EmailNotifier."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def ticket_submitted(self, name, email, title):
        self.sent.append({"kind": "submitted", "email": email, "title": title})
        return True

    async def ticket_assigned(self, name, email, title, employee_name):
        self.sent.append({"kind": "assigned", "email": email, "employee": employee_name})
        return True

    async def ticket_closed(self, ticket_id, name, email, title):
        self.sent.append({"kind": "closed", "email": email, "ticket_id": ticket_id})
        return True

    async def password_reset(self, name, email, reset_link):
        self.sent.append({"kind": "password_reset", "email": email, "link": reset_link})
        return True

    async def close(self):
        pass


class FakeUploader(IMediaUploader):
    """Returns a predictable URL, or fails when told to."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: List[str] = []

    async def upload(self, filename: str, content: bytes, content_type: str) -> str:
        validate_image(filename, content, content_type)
        if self.fail:
            raise ExternalServiceException("Cloudinary", "image upload failed")
        self.uploads.append(filename)
        return f"https://cdn.example.com/{filename}"


class FakeWebSocket:
    """Minimal WebSocket double for the connection manager."""

    def __init__(self, broken: bool = False):
        self.accepted = False
        self.sent: List[Dict[str, Any]] = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    maker: async_sessionmaker = build_session_maker(engine)
    async with maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# COLLABORATORS
# =============================================================================

@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def fake_socket():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


_password_hash: Optional[str] = None


def hashed_test_password() -> str:
    global _password_hash
    if _password_hash is None:
        _password_hash = PasswordHasher(rounds=4).hash(TEST_PASSWORD)
    return _password_hash


@pytest.fixture
def make_user(session):
    """Factory creating users directly through the repository."""
    repo = SQLAlchemyUserRepository(session)
    counter = {"n": 0}

    async def factory(role: str = Role.USER, name: Optional[str] = None, email: Optional[str] = None):
        counter["n"] += 1
        n = counter["n"]
        return await repo.create(
            name=name or f"{role.capitalize()} {n}",
            email=email or f"{role}{n}@example.com",
            phone=None,
            role=role,
            password_hash=hashed_test_password(),
        )

    return factory

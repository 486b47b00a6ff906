"""
QuixDesk - Main Application
===========================

Customer support ticketing: users file tickets, employees pick them up
and chat in real time, admins assign work and watch the numbers.

Modules:
- Accounts: sign-up, login, profiles, employee management
- Tickets: submission, assignment, closure workflow, chat handshake
- Chat: messages, read receipts, reactions, typing indicators
- Ratings: customer feedback on employees
- Realtime: WebSocket fan-out of ticket and chat events
- Assistant: QuixkyBot and text-to-speech
- Analytics: admin overview, CSR dashboard, reports

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Workflow rules
- Infrastructure: Database, external APIs
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# Configuration and Core
from quixdesk.config import settings
from quixdesk.core import ApplicationException

# Infrastructure
from quixdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from quixdesk.infrastructure.llm import build_llm_client
from quixdesk.infrastructure.mail import EmailNotifier, NotificationDispatcher
from quixdesk.infrastructure.media import CloudinaryUploader
from quixdesk.infrastructure.speech import ElevenLabsClient
from quixdesk.accounts.infrastructure.security import PasswordHasher, TokenService

# Realtime & background work
from quixdesk.chat.application.typing import TypingTracker
from quixdesk.realtime.publisher import event_publisher
from quixdesk.tickets.application.monitor import FirstResponseMonitor
from quixdesk.tickets.infrastructure.repositories import SQLAlchemyTicketRepository
from quixdesk.tickets.infrastructure.scheduler import ResponseWatchScheduler

# Module Routers
from quixdesk.accounts.interfaces import accounts_router
from quixdesk.analytics.interfaces import analytics_router
from quixdesk.assistant.interfaces import assistant_router
from quixdesk.chat.interfaces import chat_router
from quixdesk.ratings.interfaces import ratings_router
from quixdesk.realtime.websocket_routes import websocket_router
from quixdesk.tickets.interfaces import tickets_router

# Middleware & Logging
from quixdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from quixdesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def first_response_watch_job() -> None:
    """Background first-response watch pass."""
    async with get_session_context() as session:
        monitor = FirstResponseMonitor(
            SQLAlchemyTicketRepository(session),
            event_publisher,
            target_minutes=settings.first_response_target_minutes
        )
        await monitor.run()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Build shared clients (auth, media, email, speech, LLM)
    4. Start the first-response watcher

    SHUTDOWN:
    1. Stop the watcher and typing timers
    2. Close outbound clients
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting QuixDesk", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()
    await create_tables()

    state = app.state
    state.settings = settings
    state.password_hasher = PasswordHasher()
    state.token_service = TokenService()
    state.media_uploader = CloudinaryUploader()
    state.email_notifier = NotificationDispatcher(EmailNotifier())
    state.speech_client = ElevenLabsClient()
    state.llm_client = build_llm_client()
    state.event_publisher = event_publisher
    state.typing_tracker = TypingTracker(event_publisher, settings.typing_timeout_seconds)

    state.response_watch = ResponseWatchScheduler(interval_seconds=settings.response_watch_interval)
    if settings.response_watch_enabled:
        try:
            await state.response_watch.start(first_response_watch_job)
        except Exception as e:
            logger.warning(f"Response watch scheduler not started: {e}")

    logger.info("QuixDesk started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down QuixDesk")

    await state.response_watch.stop()
    await state.typing_tracker.close()

    await state.media_uploader.close()
    await state.email_notifier.close()
    await state.speech_client.close()
    if state.llm_client is not None:
        await state.llm_client.close()

    await close_database()
    logger.info("QuixDesk shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="QuixDesk API",
    description="""
    ## Customer Support Ticketing

    ### 👤 Accounts
    - `POST /auth/register`, `POST /auth/login`, `GET /auth/me`
    - `POST /auth/password-reset`, `POST /auth/password-reset/confirm`
    - `GET|PATCH|DELETE /profile`, `POST /profile/picture`, `POST /profile/password`
    - `GET /employees`, `DELETE /employees/{id}` (admin)

    ### 🎫 Tickets
    - `POST /tickets` (multipart, optional image), `GET /tickets`, `GET /tickets/{id}`
    - `POST /tickets/{id}/assign` (admin), `GET /tickets/board` (admin)
    - `GET /tickets/flagged`, `POST /tickets/moderation/run` (admin)
    - `GET /tickets/assigned`, `GET /tickets/chat-requests` (employee)
    - Closure: `request-closure` → `confirm-closure`, or `close`
    - Chat handshake: `chat/request`, `chat/connect`, `chat/join`, `chat/end`

    ### 💬 Chat & live events
    - `GET|POST /tickets/{id}/messages`, `POST /tickets/{id}/messages/read`
    - `PUT /messages/{id}/reaction`, `POST /tickets/{id}/typing`
    - `WS /ws?token=...` - subscribe to `ticket:{id}` channels

    ### ⭐ Ratings, 🤖 Assistant, 📊 Analytics
    - `POST /tickets/{id}/rating`, `GET /ratings/pending`
    - `POST /assistant/ask`, `POST /assistant/speak`
    - `GET /analytics/overview`, `GET /analytics/export`, `GET /analytics/csr`

    ---

    **Closure workflow:**

    | Action | Allowed from | Result |
    |--------|-------------|--------|
    | connect (answer) | open, answered, requested | answered |
    | request closure | open, answered | requested |
    | confirm closure | requested | closed |
    | close | open, answered, requested | closed |
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(accounts_router)
app.include_router(tickets_router)
app.include_router(chat_router)
app.include_router(ratings_router)
app.include_router(assistant_router)
app.include_router(analytics_router)
app.include_router(websocket_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "response_watch": "running",
                        "llm_client": "available",
                        "email": "configured",
                        "media": "configured",
                        "speech": "not_configured",
                        "realtime": "3 connections"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports degraded when the database cannot be reached.
    """
    state = request.app.state
    checks = {
        "database": "connected",
        "response_watch": "running" if state.response_watch.is_running else "stopped",
        "llm_client": "available" if state.llm_client else "not_configured",
        "email": "configured" if state.email_notifier.notifier.is_configured else "not_configured",
        "media": "configured" if state.media_uploader.is_configured else "not_configured",
        "speech": "configured" if state.speech_client.is_configured else "not_configured",
        "realtime": f"{state.event_publisher.manager.get_stats()['total_connections']} connections",
    }

    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = f"error: {str(e)}"

    return {
        "status": "healthy" if checks["database"] == "connected" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "websocket": "/ws?token=<access_token>",
    }


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "quixdesk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug
    )


if __name__ == "__main__":
    run()

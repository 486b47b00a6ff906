"""
Shared API Middleware
======================

Request middleware and exception handlers installed on the application.
"""

import time
import uuid
from typing import Callable
from datetime import datetime, timezone

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from fastapi.responses import JSONResponse

from quixdesk.core import (
    ApplicationException,
    AuthenticationException,
    ConfigurationException,
    ConflictException,
    ExternalServiceException,
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
)
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Propagates or generates an X-Correlation-ID for every request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Tracks request count and response time."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.request_count = 0
        self.total_response_time = 0.0

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        self.request_count += 1

        response = await call_next(request)

        response_time = time.perf_counter() - start_time
        self.total_response_time += response_time
        response.headers["X-Response-Time"] = f"{response_time:.3f}s"
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with method, path, status and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


# Most specific first; the first isinstance match wins.
_STATUS_BY_EXCEPTION = (
    (ResourceNotFoundException, status.HTTP_404_NOT_FOUND),
    (AuthenticationException, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedException, status.HTTP_403_FORBIDDEN),
    (ConflictException, status.HTTP_409_CONFLICT),
    (InvalidTransitionException, status.HTTP_409_CONFLICT),
    (ExternalServiceException, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationException, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: ApplicationException) -> int:
    """HTTP status for an application exception (422 when unmapped)."""
    for exc_type, code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_422_UNPROCESSABLE_ENTITY


async def application_exception_handler(
    request: Request, exc: ApplicationException
) -> JSONResponse:
    """Translate service-layer exceptions into JSON error responses."""
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    code = status_for(exc)

    logger.warning(
        "Request rejected",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "status_code": code,
            "error_type": type(exc).__name__,
            "error_message": exc.message
        }
    )

    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=code,
        content={
            "detail": exc.message,
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        },
        headers=headers
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for unhandled exceptions."""
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )

"""
Outbound HTTP Resilience
========================

Circuit breaker plus an httpx-based client base class with exponential
backoff. Email, media upload and text-to-speech integrations build on it.
"""

import asyncio
import time
from typing import Any, Optional

import httpx

from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "external"
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "circuit": self.name,
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class ResilientHttpClient:
    """
    Base class for outbound integrations.

    Subclasses call `_post()`, which retries with exponential backoff and
    trips the circuit breaker after repeated exhausted attempts.
    """

    service_name = "external"

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._transport = transport
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60,
            name=self.service_name
        )
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport
            )
        return self._http_client

    async def _post(self, url: str, **kwargs: Any) -> Optional[httpx.Response]:
        """
        POST with retries.

        Returns the first 2xx response, or None when the circuit is open,
        every attempt failed, or the server answered with a 4xx (not retried).
        """
        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping request",
                extra={"service": self.service_name}
            )
            return None

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(url, **kwargs)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    return response

                logger.warning(
                    "External service returned error status",
                    extra={
                        "service": self.service_name,
                        "status_code": response.status_code,
                        "attempt": attempt + 1
                    }
                )
                if response.status_code < 500:
                    return None

            except httpx.HTTPError as e:
                logger.error(
                    "External service call failed",
                    extra={
                        "service": self.service_name,
                        "error": str(e),
                        "attempt": attempt + 1
                    }
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return None

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

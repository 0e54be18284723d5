"""
VetPintar Backend — AI Service Proxy
======================================

What:  Forwards authenticated AI requests (chat, record search, transcription,
       SOAP notes, differential diagnosis) to the external AI service.
How:   httpx AsyncClient + tenacity retry + circuit breaker.
Who:   routes/ai.py; the breaker state is reported by routes/health.py.

Resilience Strategy:
    1. Circuit breaker checked first; OPEN rejects instantly with 503
    2. Transport errors (connect/read/timeout) retried with exponential
       backoff + jitter
    3. Upstream HTTP error responses are returned unchanged; 5xx answers
       still count as a breaker failure
    4. Retries exhausted → AIServiceError (503)
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from vetpintar.config import settings
from vetpintar.exceptions import AIServiceError, CircuitBreakerOpenError

logger = logging.getLogger(__name__)

# Paths accepted by POST /api/ai/{path}
AI_ENDPOINTS = ("chat", "query/search", "transcribe", "soap", "diagnosis")


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    State Machine:
        CLOSED    → failures counted; at failure_threshold → OPEN
        OPEN      → every call raises CircuitBreakerOpenError until
                    recovery_timeout seconds have passed → HALF_OPEN
        HALF_OPEN → one call let through; success → CLOSED, failure → OPEN

    Not shared between worker processes; each uvicorn worker keeps its own.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Raises:
            CircuitBreakerOpenError: OPEN and the recovery timeout has not elapsed
        """
        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                raise CircuitBreakerOpenError(recovery_time=int(self.recovery_timeout - elapsed))
            logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures", self.failure_count
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Proxy
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class UpstreamResponse:
    status_code: int
    body: Any


class AIProxyService:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.ai_service_url.rstrip("/")
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "AIProxyService initialized for %s, circuit_breaker(threshold=%d, recovery=%ds)",
            self.base_url, settings.cb_failure_threshold, settings.cb_recovery_timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if settings.ai_service_api_key:
                headers["X-API-Key"] = settings.ai_service_api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(settings.ai_request_timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def forward(self, path: str, payload: Dict[str, Any], user_id: Optional[uuid.UUID] = None) -> UpstreamResponse:
        """
        POSTs `payload` to {ai_service_url}/{path}.

        Returns:
            UpstreamResponse with the upstream status and JSON body (error
            responses included)

        Raises:
            CircuitBreakerOpenError: breaker is OPEN
            AIServiceError: the service could not be reached after all retries
        """
        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()
        logger.info("[%s] Forwarding AI request /%s for user %s", request_id, path, user_id)

        try:
            response = await self._post_with_retry(path, payload, request_id)
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All AI service retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise AIServiceError(
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] AI service request failed: %s", request_id, e, exc_info=True)
            raise AIServiceError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        if response.status_code >= 500:
            self.circuit_breaker.record_failure()
        else:
            self.circuit_breaker.record_success()

        try:
            body = response.json()
        except ValueError:
            body = {"success": False, "error": "upstream_error", "message": response.text}

        if response.is_error:
            logger.warning("[%s] AI service answered %d for /%s", request_id, response.status_code, path)
        return UpstreamResponse(status_code=response.status_code, body=body)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def _post_with_retry(self, path: str, payload: Dict[str, Any], request_id: str) -> httpx.Response:
        start_time = time.time()
        response = await self.client.post(f"/{path.lstrip('/')}", json=payload)
        logger.info(
            "[%s] AI service /%s answered %d in %.0fms",
            request_id, path, response.status_code, (time.time() - start_time) * 1000,
        )
        return response


# ── Singleton Instance ────────────────────────────────────────────────────
ai_proxy_service = AIProxyService()

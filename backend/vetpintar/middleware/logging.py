"""
VetPintar Backend — Access Log Middleware
===========================================

Writes one line per API call to the `vetpintar.access` logger:

    GET /api/patients 200 12.4ms [3f9a1c2e] clinic=<uuid> from 10.0.0.7

Level follows the outcome (5xx ERROR, 4xx WARNING, else INFO); a request
slower than settings.slow_request_ms is raised to WARNING even when it
succeeds. Health probes and API docs are not logged. Bodies, query strings
other than clinic_id, and Authorization headers never appear in the log.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from vetpintar.config import settings
from vetpintar.middleware.request_id import request_id_var

logger = logging.getLogger("vetpintar.access")

QUIET_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}


def outcome_level(status: int, duration_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400 or duration_ms >= settings.slow_request_ms:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        clinic_id = request.query_params.get("clinic_id", "-")

        logger.log(
            outcome_level(response.status_code, duration_ms),
            "%s %s %d %.1fms [%s] clinic=%s from %s",
            request.method, path, response.status_code, duration_ms, rid, clinic_id, client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "clinic_id": clinic_id,
                "client_ip": client_ip,
            },
        )
        return response

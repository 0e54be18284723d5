"""
VetPintar Backend — Health Check Route
========================================

What:  Liveness/readiness probe for load balancers and Docker health checks.
How:   SELECT 1 against the database; the AI proxy is reported by its
       circuit breaker state only (no outbound call).

Status levels:
    OK     → database reachable (HTTP 200)
    ERROR  → database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from vetpintar import __version__
from vetpintar.database import check_database
from vetpintar.models.mixins import utcnow
from vetpintar.schemas.common import HealthResponse
from vetpintar.services.ai_proxy_service import ai_proxy_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check():
    db_status = "connected"
    try:
        if not await check_database():
            db_status = "disconnected"
    except Exception as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", str(e))

    body = HealthResponse(
        status="OK" if db_status == "connected" else "ERROR",
        timestamp=utcnow(),
        uptime_seconds=round(time.time() - _start_time, 2),
        version=__version__,
        database=db_status,
        ai_service=ai_proxy_service.circuit_breaker.state,
    )
    if db_status != "connected":
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return body

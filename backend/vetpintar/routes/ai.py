"""
VetPintar Backend — AI Proxy Route
====================================

What:  POST /api/ai/{path} — authenticated pass-through to the AI service.
How:   The JSON body is forwarded unchanged and the upstream status and body
       are returned unchanged, so the frontend sees exactly what the AI
       service said. Only the paths in AI_ENDPOINTS are exposed.

Errors:
    404 → path is not one of the proxied endpoints
    503 → circuit breaker open, or AI service unreachable after retries
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from vetpintar.dependencies import CurrentUser, get_current_user
from vetpintar.exceptions import NotFoundError
from vetpintar.schemas.common import ErrorResponse
from vetpintar.services.ai_proxy_service import AI_ENDPOINTS, ai_proxy_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])


@router.post(
    "/{path:path}",
    responses={
        404: {"description": "Unknown AI endpoint", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Forward a request to the AI service",
    description="Proxied paths: " + ", ".join(AI_ENDPOINTS),
)
async def proxy_ai_request(
    path: str,
    payload: Dict[str, Any] = Body(default_factory=dict),
    user: CurrentUser = Depends(get_current_user),
):
    path = path.strip("/")
    if path not in AI_ENDPOINTS:
        raise NotFoundError(resource="ai_endpoint", resource_id=path, message=f"AI endpoint '{path}' not found")

    upstream = await ai_proxy_service.forward(path, payload, user.id)
    return JSONResponse(status_code=upstream.status_code, content=upstream.body)

"""
VetPintar Backend — Real-Time WebSocket Route
===============================================

What:  WS /ws?token=<access token> — clinic event stream.
How:   The token is verified once on connect. The client then joins one or
       more clinic rooms and receives every event services emit there.

Client → server:
    {"action": "join-clinic", "clinic_id": "<uuid>"}
    {"action": "leave-clinic", "clinic_id": "<uuid>"}
    {"action": "ping"}

Server → client:
    {"event": "joined-clinic" | "left-clinic" | "pong" | "error" | <domain event>,
     "data": {...}, "timestamp": "..."}
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from vetpintar.database import async_session_factory
from vetpintar.dependencies import CurrentUser, authenticate_token, resolve_clinic_access
from vetpintar.exceptions import VetPintarError
from vetpintar.models.mixins import utcnow
from vetpintar.services.notification_service import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Real-Time"])


async def _send(websocket: WebSocket, event: str, data: Dict[str, Any]) -> None:
    await websocket.send_json(jsonable_encoder({"event": event, "data": data, "timestamp": utcnow()}))


def _clinic_id(message: Dict[str, Any]) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(message.get("clinic_id")))
    except ValueError:
        return None


async def _authenticate(token: Optional[str]) -> Optional[CurrentUser]:
    if not token:
        return None
    async with async_session_factory() as db:
        try:
            return await authenticate_token(db, token)
        except VetPintarError as e:
            logger.info("WebSocket authentication rejected: %s", e.message)
            return None


async def _join(websocket: WebSocket, user: CurrentUser, clinic_id: uuid.UUID) -> None:
    async with async_session_factory() as db:
        try:
            await resolve_clinic_access(db, user, clinic_id)
        except VetPintarError as e:
            await _send(websocket, "error", {"message": e.message, "clinic_id": clinic_id})
            return
    room = notification_service.join(websocket, clinic_id)
    logger.info("User %s joined %s", user.id, room)
    await _send(websocket, "joined-clinic", {"clinic_id": clinic_id})


@router.websocket("/ws")
async def clinic_events(websocket: WebSocket, token: Optional[str] = Query(default=None)):
    user = await _authenticate(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await notification_service.connect(websocket)
    logger.info("WebSocket connected for user %s", user.id)

    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except ValueError:
                await _send(websocket, "error", {"message": "Messages must be JSON"})
                continue
            action = message.get("action") if isinstance(message, dict) else None

            if action == "ping":
                await _send(websocket, "pong", {})
                continue

            if action not in ("join-clinic", "leave-clinic"):
                await _send(websocket, "error", {"message": f"Unknown action: {action}"})
                continue

            clinic_id = _clinic_id(message)
            if clinic_id is None:
                await _send(websocket, "error", {"message": "A valid clinic_id is required"})
            elif action == "join-clinic":
                await _join(websocket, user, clinic_id)
            else:
                notification_service.leave(websocket, clinic_id)
                await _send(websocket, "left-clinic", {"clinic_id": clinic_id})
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for user %s", user.id)
    finally:
        notification_service.disconnect(websocket)

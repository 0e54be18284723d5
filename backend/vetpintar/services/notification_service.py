"""
VetPintar Backend — Real-Time Notification Service
====================================================

What:  In-process WebSocket connection manager with per-clinic rooms.
How:   The /ws endpoint registers sockets and joins them to `clinic-{id}`
       rooms. Domain services call `defer(db, clinic_id, event, data)`; the
       event is emitted once the request session commits and dropped if it
       rolls back.
Who:   routes/realtime.py (connections); appointment, invoice, medical
       record and product services (events).

Wire format (server → client):
    {"event": "invoice-created", "data": {...}, "timestamp": "2025-01-01T10:00:00+00:00"}

Delivery:
    Best effort. Sockets that fail to send are dropped from every room, and
    emit() never raises into the calling service, so a broken client
    cannot fail a database write.

Scaling Note:
    Rooms live in process memory. With several workers each process only
    reaches its own clients; a shared broker would be needed for fan-out
    across processes.
"""

import logging
import uuid
from typing import Any, Dict, Set, Union

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.database import after_commit
from vetpintar.models.mixins import utcnow

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}

    @staticmethod
    def room_name(clinic_id: Union[uuid.UUID, str]) -> str:
        return f"clinic-{clinic_id}"

    # ── Connection lifecycle ──────────────────────────────────────────────

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()

    def disconnect(self, websocket: WebSocket) -> None:
        """Removes the socket from every room; empty rooms are deleted."""
        for room in list(self.rooms):
            members = self.rooms[room]
            members.discard(websocket)
            if not members:
                del self.rooms[room]

    def join(self, websocket: WebSocket, clinic_id: Union[uuid.UUID, str]) -> str:
        room = self.room_name(clinic_id)
        self.rooms.setdefault(room, set()).add(websocket)
        logger.debug("Socket joined %s (%d members)", room, len(self.rooms[room]))
        return room

    def leave(self, websocket: WebSocket, clinic_id: Union[uuid.UUID, str]) -> str:
        room = self.room_name(clinic_id)
        members = self.rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self.rooms[room]
        return room

    def connection_count(self, clinic_id: Union[uuid.UUID, str]) -> int:
        return len(self.rooms.get(self.room_name(clinic_id), ()))

    # ── Fan-out ───────────────────────────────────────────────────────────

    def defer(
        self, db: AsyncSession, clinic_id: Union[uuid.UUID, str], event: str, data: Dict[str, Any]
    ) -> None:
        """Queues `event` for the clinic room. It is sent only if `db` commits."""
        async def publish() -> None:
            await self.emit(clinic_id, event, data)

        after_commit(db, publish)
        logger.debug("Queued %s for %s until commit", event, self.room_name(clinic_id))

    async def emit(self, clinic_id: Union[uuid.UUID, str], event: str, data: Dict[str, Any]) -> int:
        """
        Sends one event to every socket in the clinic's room.

        Returns:
            Number of sockets the event was delivered to.
        """
        room = self.room_name(clinic_id)
        members = list(self.rooms.get(room, ()))
        if not members:
            logger.debug("No listeners in %s for %s", room, event)
            return 0

        try:
            message = jsonable_encoder({"event": event, "data": data, "timestamp": utcnow()})
        except Exception as e:
            logger.error("Could not encode %s event for %s: %s", event, room, e, exc_info=True)
            return 0

        delivered = 0
        stale = []
        for websocket in members:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping socket in %s after send failure: %s", room, e)
                stale.append(websocket)

        for websocket in stale:
            self.disconnect(websocket)

        logger.info("Emitted %s to %s (%d/%d sockets)", event, room, delivered, len(members))
        return delivered


# ── Singleton Instance ────────────────────────────────────────────────────
notification_service = NotificationService()

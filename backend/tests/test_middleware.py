"""
VetPintar Backend — Middleware & Real-Time Tests
==================================================

What we test:
    ✅ X-Request-ID is echoed back, or generated when missing
    ✅ Credential endpoints have their own, stricter rate limit bucket
    ✅ 429 carries Retry-After and details.retry_after
    ✅ Health checks are never rate limited
    ✅ WebSocket: bad token closes with 1008; ping, join, leave, bad input
"""

import logging
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from vetpintar.config import settings
from vetpintar.dependencies import CurrentUser
from vetpintar.exceptions import AuthenticationError, PermissionDeniedError
from vetpintar.main import create_app
from vetpintar.middleware.logging import outcome_level
from vetpintar.middleware.request_id import resolve_request_id
from vetpintar.models.enums import UserRole
from vetpintar.services.notification_service import notification_service

LOGIN = {"email": "staff@vetpintar.id", "password": "wrong"}


class TestRequestId:

    @pytest.mark.asyncio
    async def test_inbound_id_is_echoed(self, test_client):
        with patch("vetpintar.routes.health.check_database", AsyncMock(return_value=True)):
            response = await test_client.get("/api/health", headers={"X-Request-ID": "trace-1"})

        assert response.headers["X-Request-ID"] == "trace-1"

    @pytest.mark.asyncio
    async def test_id_generated_when_missing(self, test_client):
        with patch("vetpintar.routes.health.check_database", AsyncMock(return_value=True)):
            response = await test_client.get("/api/health")

        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_malformed_inbound_id_is_replaced(self, test_client):
        with patch("vetpintar.routes.health.check_database", AsyncMock(return_value=True)):
            response = await test_client.get("/api/health", headers={"X-Request-ID": "bad id;drop"})

        assert response.headers["X-Request-ID"] != "bad id;drop"
        assert len(response.headers["X-Request-ID"]) == 8

    def test_resolve_request_id(self):
        assert resolve_request_id("6f1c2b90-aa01-4c55-9d0e-1234567890ab") == "6f1c2b90-aa01-4c55-9d0e-1234567890ab"
        assert len(resolve_request_id("")) == 8
        assert len(resolve_request_id("x" * 65)) == 8


class TestAccessLogLevel:

    def test_levels_follow_outcome(self):
        with patch.object(settings, "slow_request_ms", 500):
            assert outcome_level(200, 12.0) == logging.INFO
            assert outcome_level(200, 800.0) == logging.WARNING
            assert outcome_level(404, 3.0) == logging.WARNING
            assert outcome_level(503, 3.0) == logging.ERROR


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_auth_bucket_limits_login(self, test_client):
        with patch.object(settings, "auth_rate_limit_requests", 2), \
             patch("vetpintar.routes.auth.auth_service") as mock_auth:
            mock_auth.login = AsyncMock(side_effect=AuthenticationError("Invalid email or password"))

            first = await test_client.post("/api/auth/login", json=LOGIN)
            second = await test_client.post("/api/auth/login", json=LOGIN)
            third = await test_client.post("/api/auth/login", json=LOGIN)

            assert first.status_code == second.status_code == 401
            assert third.status_code == 429
            assert mock_auth.login.await_count == 2
            body = third.json()
            assert body["error"] == "rate_limit_exceeded"
            assert int(third.headers["Retry-After"]) == body["details"]["retry_after"]
            assert body["details"]["retry_after"] > 0

    @pytest.mark.asyncio
    async def test_auth_bucket_does_not_consume_global(self, test_client):
        with patch.object(settings, "auth_rate_limit_requests", 1), \
             patch("vetpintar.routes.auth.auth_service") as mock_auth:
            mock_auth.login = AsyncMock(side_effect=AuthenticationError("Invalid email or password"))

            await test_client.post("/api/auth/login", json=LOGIN)
            limited = await test_client.post("/api/auth/login", json=LOGIN)
            other = await test_client.get("/api/patients")

            assert limited.status_code == 429
            assert other.status_code == 401

    @pytest.mark.asyncio
    async def test_health_is_never_limited(self, test_client):
        with patch.object(settings, "rate_limit_requests", 1), \
             patch("vetpintar.routes.health.check_database", AsyncMock(return_value=True)):
            statuses = [(await test_client.get("/api/health")).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]


class TestRealtimeSocket:
    """
    Uses Starlette's synchronous TestClient, which drives the WebSocket
    route in its own event loop.
    """

    def setup_method(self):
        self.client = TestClient(create_app())
        self.user = CurrentUser(
            id=uuid.uuid4(), email="vet@vetpintar.id", role=UserRole.VETERINARIAN, clinic_id=None
        )

    def test_missing_token_is_rejected(self):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with self.client.websocket_connect("/ws") as ws:
                ws.receive_json()
        assert exc_info.value.code == 1008

    def test_invalid_token_is_rejected(self):
        with patch(
            "vetpintar.routes.realtime.authenticate_token",
            AsyncMock(side_effect=AuthenticationError("Invalid or expired token")),
        ):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with self.client.websocket_connect("/ws?token=bad") as ws:
                    ws.receive_json()
        assert exc_info.value.code == 1008

    def test_ping_join_leave(self):
        clinic_id = uuid.uuid4()
        with patch("vetpintar.routes.realtime.authenticate_token", AsyncMock(return_value=self.user)), \
             patch("vetpintar.routes.realtime.resolve_clinic_access", AsyncMock()):
            with self.client.websocket_connect("/ws?token=good") as ws:
                ws.send_json({"action": "ping"})
                assert ws.receive_json()["event"] == "pong"

                ws.send_json({"action": "join-clinic", "clinic_id": str(clinic_id)})
                joined = ws.receive_json()
                assert joined["event"] == "joined-clinic"
                assert joined["data"] == {"clinic_id": str(clinic_id)}
                assert notification_service.connection_count(clinic_id) == 1

                ws.send_json({"action": "leave-clinic", "clinic_id": str(clinic_id)})
                assert ws.receive_json()["event"] == "left-clinic"
                assert notification_service.connection_count(clinic_id) == 0

    def test_join_without_access(self):
        clinic_id = uuid.uuid4()
        with patch("vetpintar.routes.realtime.authenticate_token", AsyncMock(return_value=self.user)), \
             patch(
                 "vetpintar.routes.realtime.resolve_clinic_access",
                 AsyncMock(side_effect=PermissionDeniedError("No access to this clinic")),
             ):
            with self.client.websocket_connect("/ws?token=good") as ws:
                ws.send_json({"action": "join-clinic", "clinic_id": str(clinic_id)})
                message = ws.receive_json()

                assert message["event"] == "error"
                assert message["data"]["message"] == "No access to this clinic"
                assert notification_service.connection_count(clinic_id) == 0

    @pytest.mark.parametrize("raw, expected", [
        ("not json", "Messages must be JSON"),
        ('{"action": "join-clinic", "clinic_id": "nope"}', "A valid clinic_id is required"),
        ('{"action": "dance"}', "Unknown action: dance"),
    ])
    def test_bad_messages_get_error_events(self, raw, expected):
        with patch("vetpintar.routes.realtime.authenticate_token", AsyncMock(return_value=self.user)):
            with self.client.websocket_connect("/ws?token=good") as ws:
                ws.send_text(raw)
                message = ws.receive_json()

                assert message["event"] == "error"
                assert message["data"]["message"] == expected

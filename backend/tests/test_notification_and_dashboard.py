"""
VetPintar Backend — Notification & Dashboard Unit Tests
=========================================================

What we test:
    ✅ Rooms: join, leave, disconnect, per-clinic isolation
    ✅ emit() returns delivered count and drops sockets that fail
    ✅ defer() holds an event until the session commits
    ✅ Dashboard period buckets (week / month / year)
    ✅ Charts fill empty buckets and sort rows into them
    ✅ No clinic context → empty dashboard instead of an error
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from vetpintar.database import run_after_commit
from vetpintar.exceptions import ValidationError
from vetpintar.models.enums import AppointmentStatus, InvoiceStatus, RecordStatus
from vetpintar.services.dashboard_service import DashboardService, bucket_key, period_buckets
from vetpintar.services.notification_service import NotificationService

FIXED_NOW = datetime(2025, 3, 5, 8, 0, tzinfo=timezone.utc)


def _socket():
    ws = MagicMock()
    ws.send_json = AsyncMock()
    return ws


class TestNotificationService:

    def setup_method(self):
        self.service = NotificationService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_emit_reaches_only_the_clinic_room(self):
        mine, other = _socket(), _socket()
        self.service.join(mine, self.clinic_id)
        self.service.join(other, uuid4())

        delivered = await self.service.emit(self.clinic_id, "invoice-created", {"amount": Decimal("10.50")})

        assert delivered == 1
        message = mine.send_json.await_args.args[0]
        assert message["event"] == "invoice-created"
        assert message["data"] == {"amount": 10.5}
        assert "timestamp" in message
        other.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_emit_to_empty_room(self):
        assert await self.service.emit(self.clinic_id, "low-stock-alert", {}) == 0

    @pytest.mark.asyncio
    async def test_failing_socket_is_dropped(self):
        healthy, broken = _socket(), _socket()
        broken.send_json.side_effect = RuntimeError("socket closed")
        self.service.join(healthy, self.clinic_id)
        self.service.join(broken, self.clinic_id)

        delivered = await self.service.emit(self.clinic_id, "payment-received", {})

        assert delivered == 1
        assert self.service.connection_count(self.clinic_id) == 1

    @pytest.mark.asyncio
    async def test_deferred_event_waits_for_commit(self, mock_db_session):
        ws = _socket()
        self.service.join(ws, self.clinic_id)

        self.service.defer(mock_db_session, self.clinic_id, "invoice-created", {"invoice_number": "INV-1"})
        ws.send_json.assert_not_awaited()

        await run_after_commit(mock_db_session)

        assert ws.send_json.await_args.args[0]["event"] == "invoice-created"

    def test_leave_and_disconnect_remove_empty_rooms(self):
        ws = _socket()
        second_clinic = uuid4()
        self.service.join(ws, self.clinic_id)
        self.service.join(ws, second_clinic)

        assert self.service.leave(ws, self.clinic_id) == f"clinic-{self.clinic_id}"
        assert self.service.connection_count(self.clinic_id) == 0
        assert self.service.connection_count(second_clinic) == 1

        self.service.disconnect(ws)
        assert self.service.rooms == {}


class TestPeriodBuckets:

    def test_week_is_seven_days_ending_today(self):
        start, keys = period_buckets("week", date(2025, 3, 5))
        assert start == date(2025, 2, 27)
        assert keys[0] == "2025-02-27"
        assert keys[-1] == "2025-03-05"
        assert len(keys) == 7

    def test_month_starts_on_the_first(self):
        start, keys = period_buckets("month", date(2025, 3, 5))
        assert start == date(2025, 3, 1)
        assert keys == ["2025-03-01", "2025-03-02", "2025-03-03", "2025-03-04", "2025-03-05"]

    def test_year_is_monthly(self):
        start, keys = period_buckets("year", date(2025, 3, 5))
        assert start == date(2025, 1, 1)
        assert keys == ["2025-01", "2025-02", "2025-03"]

    def test_invalid_period(self):
        with pytest.raises(ValidationError):
            period_buckets("decade", date(2025, 3, 5))

    def test_bucket_key(self):
        assert bucket_key("year", date(2025, 3, 5)) == "2025-03"
        assert bucket_key("week", date(2025, 3, 5)) == "2025-03-05"


class TestDashboardService:

    def setup_method(self):
        self.service = DashboardService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_without_clinic_everything_is_empty(self, mock_db_session):
        stats = await self.service.get_stats(mock_db_session, None)
        assert stats["total_patients"] == 0
        assert await self.service.get_appointments_chart(mock_db_session, None) == []
        assert await self.service.get_revenue_chart(mock_db_session, None) == []
        assert await self.service.get_species_distribution(mock_db_session, None) == []
        assert await self.service.get_recent_activity(mock_db_session, None) == []
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_appointments_chart(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[
            (date(2025, 3, 5), AppointmentStatus.COMPLETED),
            (date(2025, 3, 5), AppointmentStatus.NO_SHOW),
            (date(2025, 3, 4), AppointmentStatus.CONFIRMED),
            (date(2025, 3, 4), AppointmentStatus.IN_PROGRESS),
        ])
        with patch("vetpintar.services.dashboard_service.utcnow", return_value=FIXED_NOW):
            chart = await self.service.get_appointments_chart(mock_db_session, self.clinic_id, "week")

        assert len(chart) == 7
        assert chart[0] == {"date": "2025-02-27", "total": 0, "completed": 0, "cancelled": 0, "pending": 0}
        assert chart[-2] == {"date": "2025-03-04", "total": 2, "completed": 0, "cancelled": 0, "pending": 1}
        assert chart[-1] == {"date": "2025-03-05", "total": 2, "completed": 1, "cancelled": 1, "pending": 0}

    @pytest.mark.asyncio
    async def test_revenue_chart_by_month(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(rows=[
            (date(2025, 1, 10), Decimal("100000.00")),
            (date(2025, 1, 20), Decimal("50000.50")),
            (date(2025, 3, 1), Decimal("75000.00")),
        ])
        with patch("vetpintar.services.dashboard_service.utcnow", return_value=FIXED_NOW):
            chart = await self.service.get_revenue_chart(mock_db_session, self.clinic_id, "year")

        assert chart == [
            {"date": "2025-01", "revenue": Decimal("150000.50")},
            {"date": "2025-02", "revenue": Decimal("0.00")},
            {"date": "2025-03", "revenue": Decimal("75000.00")},
        ]

    @pytest.mark.asyncio
    async def test_recent_activity_merges_newest_first(self, mock_db_session, make_result):
        def at(day):
            return datetime(2025, 3, day, tzinfo=timezone.utc)

        appointment = SimpleNamespace(
            id=uuid4(), patient=SimpleNamespace(name="Milo"), type="Checkup",
            appointment_date=date(2025, 3, 6), appointment_time="10:00",
            status=AppointmentStatus.SCHEDULED, created_at=at(2),
        )
        invoice = SimpleNamespace(
            id=uuid4(), invoice_number="INV-1", total_amount=Decimal("5000"),
            status=InvoiceStatus.PAID, created_at=at(4),
        )
        record = SimpleNamespace(
            id=uuid4(), patient=None, chief_complaint="Limping",
            status=RecordStatus.OUTPATIENT, created_at=at(3),
        )
        mock_db_session.execute.side_effect = [
            make_result(scalars=[appointment]),
            make_result(scalars=[invoice]),
            make_result(scalars=[record]),
        ]

        activity = await self.service.get_recent_activity(mock_db_session, self.clinic_id, limit=2)

        assert [item["type"] for item in activity] == ["invoice", "medical_record"]
        assert activity[0]["description"] == "Total 5000.00"
        assert activity[1]["title"] == "Medical record for patient"

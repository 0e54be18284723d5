"""
VetPintar Backend — Appointment Service Unit Tests
====================================================

How:   Mock DB sessions; each `execute` call is answered in order through
       side_effect lists (patient → veterinarian → same-day appointments).

What we test:
    ✅ Booking with and without a veterinarian
    ✅ Double booking raises ConflictError (409)
    ✅ Unknown patient / veterinarian raise NotFoundError
    ✅ Reschedule ignores the appointment itself
    ✅ Status change emits a real-time event, also when made through update
    ✅ Explicit nulls never clear required fields
    ✅ Completed / in-progress appointments cannot be deleted
    ✅ Unexpected driver errors become DatabaseError
"""

from datetime import date
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest

from vetpintar.exceptions import BusinessRuleError, ConflictError, DatabaseError, NotFoundError
from vetpintar.models.enums import AppointmentStatus
from vetpintar.schemas.appointment import AppointmentCreate, AppointmentUpdate
from vetpintar.services.appointment_service import AppointmentService

SERVICE = "vetpintar.services.appointment_service"


def _existing(time="09:00", duration=30, status=AppointmentStatus.SCHEDULED):
    return SimpleNamespace(
        id=uuid4(),
        appointment_time=time,
        duration=duration,
        status=status,
        appointment_date=date(2025, 3, 10),
        veterinarian_id=uuid4(),
        patient=SimpleNamespace(name="Milo"),
    )


class TestCreateAppointment:

    def setup_method(self):
        self.service = AppointmentService()
        self.clinic_id = uuid4()
        self.patient = SimpleNamespace(id=uuid4(), name="Milo")

    def _data(self, **overrides):
        fields = {
            "patient_id": self.patient.id,
            "veterinarian_id": uuid4(),
            "appointment_date": date(2025, 3, 10),
            "appointment_time": "09:30",
            "duration": 30,
            "type": "Checkup",
        }
        fields.update(overrides)
        return AppointmentCreate(**fields)

    @pytest.mark.asyncio
    async def test_create_success_emits_event(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.patient),
            make_result(scalar=uuid4()),
            make_result(scalars=[_existing("09:00", 30)]),
        ]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            appointment = await self.service.create_appointment(
                mock_db_session, self.clinic_id, self._data()
            )

            assert appointment.clinic_id == self.clinic_id
            assert appointment.status == AppointmentStatus.SCHEDULED
            assert appointment.appointment_time == "09:30"
            assert appointment.reminder_sent is False
            mock_db_session.add.assert_called_once_with(appointment)
            mock_db_session.flush.assert_awaited_once()

            _, clinic_id, event, payload = mock_notify.defer.call_args.args
            assert clinic_id == self.clinic_id
            assert event == "appointment-created"
            assert payload["patient_name"] == "Milo"

    @pytest.mark.asyncio
    async def test_create_without_veterinarian_skips_checks(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=self.patient)]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            appointment = await self.service.create_appointment(
                mock_db_session, self.clinic_id, self._data(veterinarian_id=None)
            )

            assert appointment.veterinarian_id is None
            assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_double_booking_raises_conflict(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.patient),
            make_result(scalar=uuid4()),
            make_result(scalars=[_existing("09:00", 60)]),
        ]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            with pytest.raises(ConflictError, match="already has an appointment"):
                await self.service.create_appointment(mock_db_session, self.clinic_id, self._data())

            mock_db_session.add.assert_not_called()
            mock_notify.defer.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.patient),
            make_result(scalar=uuid4()),
            make_result(scalars=[_existing("09:30", 30, AppointmentStatus.CANCELLED)]),
        ]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            appointment = await self.service.create_appointment(
                mock_db_session, self.clinic_id, self._data()
            )
            assert appointment.appointment_time == "09:30"

    @pytest.mark.asyncio
    async def test_unknown_patient(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=None)]
        with pytest.raises(NotFoundError, match="Patient not found"):
            await self.service.create_appointment(mock_db_session, self.clinic_id, self._data())

    @pytest.mark.asyncio
    async def test_veterinarian_without_clinic_access(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.patient),
            make_result(scalar=None),
        ]
        with pytest.raises(NotFoundError, match="Veterinarian not found"):
            await self.service.create_appointment(mock_db_session, self.clinic_id, self._data())

    @pytest.mark.asyncio
    async def test_driver_error_becomes_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = RuntimeError("connection reset")
        with pytest.raises(DatabaseError):
            await self.service.create_appointment(mock_db_session, self.clinic_id, self._data())


class TestUpdateAppointment:

    def setup_method(self):
        self.service = AppointmentService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_reschedule_excludes_itself(self, mock_db_session, make_result):
        appointment = _existing("09:00", 30)
        mock_db_session.execute.side_effect = [
            make_result(scalar=appointment),
            make_result(scalars=[appointment]),
        ]

        updated = await self.service.update_appointment(
            mock_db_session, self.clinic_id, appointment.id,
            AppointmentUpdate(appointment_time="09:15"),
        )

        assert updated.appointment_time == "09:15"
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reschedule_into_other_slot_conflicts(self, mock_db_session, make_result):
        appointment = _existing("09:00", 30)
        other = _existing("10:00", 30)
        mock_db_session.execute.side_effect = [
            make_result(scalar=appointment),
            make_result(scalars=[appointment, other]),
        ]

        with pytest.raises(ConflictError):
            await self.service.update_appointment(
                mock_db_session, self.clinic_id, appointment.id,
                AppointmentUpdate(appointment_time="10:15"),
            )
        assert appointment.appointment_time == "09:00"

    @pytest.mark.asyncio
    async def test_notes_only_change_skips_conflict_check(self, mock_db_session, make_result):
        appointment = _existing()
        mock_db_session.execute.side_effect = [make_result(scalar=appointment)]

        updated = await self.service.update_appointment(
            mock_db_session, self.clinic_id, appointment.id, AppointmentUpdate(notes="Fasting")
        )

        assert updated.notes == "Fasting"
        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_explicit_nulls_keep_required_fields(self, mock_db_session, make_result):
        appointment = _existing()
        appointment.type = "Checkup"
        appointment.notes = "Fasting"
        mock_db_session.execute.side_effect = [make_result(scalar=appointment)]

        updated = await self.service.update_appointment(
            mock_db_session, self.clinic_id, appointment.id,
            AppointmentUpdate.model_validate({
                "appointment_date": None, "appointment_time": None, "duration": None,
                "type": None, "status": None, "notes": None,
            }),
        )

        assert updated.appointment_date == date(2025, 3, 10)
        assert updated.appointment_time == "09:00"
        assert updated.duration == 30
        assert updated.type == "Checkup"
        assert updated.status == AppointmentStatus.SCHEDULED
        assert updated.notes is None

    @pytest.mark.asyncio
    async def test_status_change_through_update_emits(self, mock_db_session, make_result):
        appointment = _existing()
        mock_db_session.execute.side_effect = [make_result(scalar=appointment)]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            await self.service.update_appointment(
                mock_db_session, self.clinic_id, appointment.id,
                AppointmentUpdate(status=AppointmentStatus.CANCELLED),
            )

            _, _, event, payload = mock_notify.defer.call_args.args
            assert event == "appointment-status-changed"
            assert payload["previous_status"] == AppointmentStatus.SCHEDULED
            assert payload["status"] == AppointmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_update_without_status_change_is_quiet(self, mock_db_session, make_result):
        appointment = _existing()
        mock_db_session.execute.side_effect = [make_result(scalar=appointment)]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            await self.service.update_appointment(
                mock_db_session, self.clinic_id, appointment.id,
                AppointmentUpdate(status=AppointmentStatus.SCHEDULED, reason="Limping"),
            )

            mock_notify.defer.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_status_emits_previous_status(self, mock_db_session, make_result):
        appointment = _existing()
        mock_db_session.execute.return_value = make_result(scalar=appointment)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            await self.service.update_status(
                mock_db_session, self.clinic_id, appointment.id, AppointmentStatus.CONFIRMED
            )

            assert appointment.status == AppointmentStatus.CONFIRMED
            _, _, event, payload = mock_notify.defer.call_args.args
            assert event == "appointment-status-changed"
            assert payload["previous_status"] == AppointmentStatus.SCHEDULED
            assert payload["status"] == AppointmentStatus.CONFIRMED


class TestDeleteAppointment:

    def setup_method(self):
        self.service = AppointmentService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS])
    async def test_cannot_delete_started_appointments(self, mock_db_session, make_result, status):
        appointment = _existing(status=status)
        mock_db_session.execute.return_value = make_result(scalar=appointment)

        with pytest.raises(BusinessRuleError):
            await self.service.delete_appointment(mock_db_session, self.clinic_id, appointment.id)
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_scheduled(self, mock_db_session, make_result):
        appointment = _existing()
        mock_db_session.execute.return_value = make_result(scalar=appointment)

        await self.service.delete_appointment(mock_db_session, self.clinic_id, appointment.id)

        mock_db_session.delete.assert_awaited_once_with(appointment)

    @pytest.mark.asyncio
    async def test_other_clinic_is_not_found(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=None)
        with pytest.raises(NotFoundError, match="Appointment not found"):
            await self.service.delete_appointment(mock_db_session, self.clinic_id, uuid4())


class TestAppointmentStats:

    @pytest.mark.asyncio
    async def test_stats_fold_no_show_into_cancelled(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(rows=[
                (AppointmentStatus.COMPLETED, 4),
                (AppointmentStatus.CANCELLED, 1),
                (AppointmentStatus.NO_SHOW, 2),
                (AppointmentStatus.SCHEDULED, 3),
            ]),
            make_result(count=2),
            make_result(count=3),
        ]

        stats = await AppointmentService().get_stats(mock_db_session, uuid4())

        assert stats["total"] == 10
        assert stats["today"] == 2
        assert stats["upcoming"] == 3
        assert stats["completed"] == 4
        assert stats["cancelled"] == 3
        assert stats["status_distribution"]["SCHEDULED"] == 3

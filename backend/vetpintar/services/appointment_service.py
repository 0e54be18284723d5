"""
VetPintar Backend — Appointment Service
=========================================

What:  Booking, rescheduling and status tracking of clinic appointments,
       with double-booking prevention per veterinarian.
Who:   routes/appointments.py.

Booking flow (create / reschedule):
    1. Patient must be an active patient of the clinic
    2. Veterinarian (optional) must be an active VETERINARIAN/ADMIN user
       with access to the clinic
    3. Load that veterinarian's appointments on the target date and run
       scheduling.find_conflicts against them (409 on any overlap)
    4. Persist, then queue a real-time event for the clinic room (sent on commit)

Events:
    appointment-created         {appointment_id, patient_name, appointment_date, appointment_time, veterinarian_id}
    appointment-status-changed  {appointment_id, status, previous_status, patient_name}
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from vetpintar.exceptions import BusinessRuleError, ConflictError, NotFoundError
from vetpintar.models.appointment import Appointment
from vetpintar.models.clinic import ClinicAccess
from vetpintar.models.enums import VETERINARIAN_ROLES, AppointmentStatus
from vetpintar.models.mixins import utcnow
from vetpintar.models.patient import Patient
from vetpintar.models.user import User
from vetpintar.schemas.appointment import AppointmentCreate, AppointmentUpdate
from vetpintar.services.base_service import (
    Page,
    changed_fields,
    paginate,
    search_filter,
    wrap_unexpected,
)
from vetpintar.services.notification_service import notification_service
from vetpintar.services.scheduling import find_conflicts, normalize_time

logger = logging.getLogger(__name__)

OPEN_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
UNDELETABLE_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS)
SCHEDULE_FIELDS = {"appointment_date", "appointment_time", "duration", "veterinarian_id"}
CLEARABLE_FIELDS = {"veterinarian_id", "reason", "notes"}


class AppointmentService:

    # ── Validation helpers ────────────────────────────────────────────────

    async def _get_scoped(self, db: AsyncSession, clinic_id: uuid.UUID, appointment_id: uuid.UUID) -> Appointment:
        result = await db.execute(
            select(Appointment).where(
                Appointment.id == appointment_id,
                Appointment.clinic_id == clinic_id,
            )
        )
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFoundError(resource="appointment", message="Appointment not found")
        return appointment

    async def _ensure_patient(self, db: AsyncSession, clinic_id: uuid.UUID, patient_id: uuid.UUID) -> Patient:
        result = await db.execute(
            select(Patient).where(
                Patient.id == patient_id,
                Patient.clinic_id == clinic_id,
                Patient.is_active.is_(True),
            )
        )
        patient = result.scalar_one_or_none()
        if patient is None:
            raise NotFoundError(
                resource="patient",
                message="Patient not found or does not belong to this clinic",
            )
        return patient

    async def _ensure_veterinarian(self, db: AsyncSession, clinic_id: uuid.UUID, veterinarian_id: uuid.UUID) -> None:
        result = await db.execute(
            select(User.id).where(
                User.id == veterinarian_id,
                User.role.in_(VETERINARIAN_ROLES),
                User.is_active.is_(True),
                exists().where(
                    ClinicAccess.user_id == User.id,
                    ClinicAccess.clinic_id == clinic_id,
                ),
            )
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(
                resource="veterinarian",
                message="Veterinarian not found or does not have access to this clinic",
            )

    async def _ensure_no_conflict(
        self,
        db: AsyncSession,
        veterinarian_id: uuid.UUID,
        appointment_date: date,
        appointment_time: str,
        duration: int,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        result = await db.execute(
            select(Appointment).where(
                Appointment.veterinarian_id == veterinarian_id,
                Appointment.appointment_date == appointment_date,
            )
        )
        conflicts = find_conflicts(
            appointment_time, duration, result.scalars().all(), exclude_id=exclude_id
        )
        if conflicts:
            logger.info(
                "Schedule conflict for vet %s on %s %s (%d overlapping)",
                veterinarian_id, appointment_date, appointment_time, len(conflicts),
            )
            raise ConflictError(
                "Veterinarian already has an appointment at this time",
                context={"conflicting_ids": [str(c.id) for c in conflicts]},
            )

    # ── CRUD ──────────────────────────────────────────────────────────────

    async def create_appointment(
        self, db: AsyncSession, clinic_id: uuid.UUID, data: AppointmentCreate
    ) -> Appointment:
        try:
            patient = await self._ensure_patient(db, clinic_id, data.patient_id)
            appointment_time = normalize_time(data.appointment_time)

            if data.veterinarian_id is not None:
                await self._ensure_veterinarian(db, clinic_id, data.veterinarian_id)
                await self._ensure_no_conflict(
                    db, data.veterinarian_id, data.appointment_date, appointment_time, data.duration
                )

            appointment = Appointment(
                **data.model_dump(exclude={"appointment_time"}),
                appointment_time=appointment_time,
                clinic_id=clinic_id,
                status=AppointmentStatus.SCHEDULED,
                reminder_sent=False,
            )
            db.add(appointment)
            await db.flush()
            await db.refresh(appointment)
            logger.info(
                "Appointment created: %s for patient %s on %s %s",
                appointment.id, patient.id, appointment.appointment_date, appointment_time,
            )
        except Exception as e:
            wrap_unexpected(e, "create appointment", clinic_id=clinic_id)

        notification_service.defer(db, clinic_id, "appointment-created", {
            "appointment_id": appointment.id,
            "patient_name": patient.name,
            "appointment_date": appointment.appointment_date,
            "appointment_time": appointment.appointment_time,
            "veterinarian_id": appointment.veterinarian_id,
        })
        return appointment

    async def list_appointments(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        patient_id: Optional[uuid.UUID] = None,
        veterinarian_id: Optional[uuid.UUID] = None,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> Page:
        try:
            query = select(Appointment).where(Appointment.clinic_id == clinic_id)
            if patient_id is not None:
                query = query.where(Appointment.patient_id == patient_id)
            if veterinarian_id is not None:
                query = query.where(Appointment.veterinarian_id == veterinarian_id)
            if status is not None:
                query = query.where(Appointment.status == status)
            if start_date is not None:
                query = query.where(Appointment.appointment_date >= start_date)
            if end_date is not None:
                query = query.where(Appointment.appointment_date <= end_date)
            if search and search.strip():
                owner = aliased(User)
                query = (
                    query.join(Patient, Patient.id == Appointment.patient_id)
                    .join(owner, owner.id == Patient.owner_id)
                    .where(search_filter(
                        search,
                        Appointment.type, Appointment.reason, Appointment.notes,
                        Patient.name, owner.name,
                    ))
                )

            query = query.order_by(Appointment.appointment_date, Appointment.appointment_time)
            return await paginate(db, query, page, limit)
        except Exception as e:
            wrap_unexpected(e, "list appointments", clinic_id=clinic_id)

    async def get_appointment(self, db: AsyncSession, clinic_id: uuid.UUID, appointment_id: uuid.UUID) -> Appointment:
        try:
            return await self._get_scoped(db, clinic_id, appointment_id)
        except Exception as e:
            wrap_unexpected(e, "retrieve appointment", appointment_id=appointment_id)

    async def update_appointment(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        appointment_id: uuid.UUID,
        data: AppointmentUpdate,
    ) -> Appointment:
        """
        Reschedules or edits an appointment.

        The conflict check runs on the resulting date/time/duration/vet
        whenever any of them changes, excluding this appointment itself.
        """
        try:
            appointment = await self._get_scoped(db, clinic_id, appointment_id)
            changes = changed_fields(data, CLEARABLE_FIELDS)
            previous = appointment.status
            if changes.get("appointment_time") is not None:
                changes["appointment_time"] = normalize_time(changes["appointment_time"])

            veterinarian_id = changes.get("veterinarian_id", appointment.veterinarian_id)
            if "veterinarian_id" in changes and veterinarian_id is not None:
                await self._ensure_veterinarian(db, clinic_id, veterinarian_id)

            if SCHEDULE_FIELDS & changes.keys() and veterinarian_id is not None:
                await self._ensure_no_conflict(
                    db,
                    veterinarian_id,
                    changes.get("appointment_date") or appointment.appointment_date,
                    changes.get("appointment_time") or appointment.appointment_time,
                    changes.get("duration") or appointment.duration,
                    exclude_id=appointment.id,
                )

            for field, value in changes.items():
                setattr(appointment, field, value)
            await db.flush()
            if "veterinarian_id" in changes:
                await db.refresh(appointment)
            logger.info("Appointment %s updated: %s", appointment_id, sorted(changes))
        except Exception as e:
            wrap_unexpected(e, "update appointment", appointment_id=appointment_id)

        if appointment.status != previous:
            self._defer_status_changed(db, clinic_id, appointment, previous)
        return appointment

    async def update_status(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        appointment_id: uuid.UUID,
        status: AppointmentStatus,
    ) -> Appointment:
        try:
            appointment = await self._get_scoped(db, clinic_id, appointment_id)
            previous = appointment.status
            appointment.status = status
            await db.flush()
            logger.info("Appointment %s status %s → %s", appointment_id, previous.value, status.value)
        except Exception as e:
            wrap_unexpected(e, "update appointment status", appointment_id=appointment_id)

        self._defer_status_changed(db, clinic_id, appointment, previous)
        return appointment

    def _defer_status_changed(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        appointment: Appointment,
        previous: AppointmentStatus,
    ) -> None:
        notification_service.defer(db, clinic_id, "appointment-status-changed", {
            "appointment_id": appointment.id,
            "status": appointment.status,
            "previous_status": previous,
            "patient_name": appointment.patient.name if appointment.patient else None,
        })

    async def delete_appointment(self, db: AsyncSession, clinic_id: uuid.UUID, appointment_id: uuid.UUID) -> None:
        try:
            appointment = await self._get_scoped(db, clinic_id, appointment_id)
            if appointment.status in UNDELETABLE_STATUSES:
                raise BusinessRuleError("Cannot delete completed or in-progress appointments")
            await db.delete(appointment)
            await db.flush()
            logger.info("Appointment %s deleted", appointment_id)
        except Exception as e:
            wrap_unexpected(e, "delete appointment", appointment_id=appointment_id)

    # ── Views ─────────────────────────────────────────────────────────────

    async def get_stats(self, db: AsyncSession, clinic_id: uuid.UUID) -> Dict[str, Any]:
        try:
            today = utcnow().date()
            rows = await db.execute(
                select(Appointment.status, func.count(Appointment.id))
                .where(Appointment.clinic_id == clinic_id)
                .group_by(Appointment.status)
            )
            distribution = {getattr(s, "value", s): count for s, count in rows.all()}

            today_count = (await db.execute(
                select(func.count(Appointment.id)).where(
                    Appointment.clinic_id == clinic_id,
                    Appointment.appointment_date == today,
                )
            )).scalar() or 0
            upcoming = (await db.execute(
                select(func.count(Appointment.id)).where(
                    Appointment.clinic_id == clinic_id,
                    Appointment.appointment_date >= today,
                    Appointment.status.in_(OPEN_STATUSES),
                )
            )).scalar() or 0

            return {
                "total": sum(distribution.values()),
                "today": today_count,
                "upcoming": upcoming,
                "completed": distribution.get(AppointmentStatus.COMPLETED.value, 0),
                "cancelled": (
                    distribution.get(AppointmentStatus.CANCELLED.value, 0)
                    + distribution.get(AppointmentStatus.NO_SHOW.value, 0)
                ),
                "status_distribution": distribution,
            }
        except Exception as e:
            wrap_unexpected(e, "compute appointment statistics", clinic_id=clinic_id)

    async def get_today(
        self, db: AsyncSession, clinic_id: uuid.UUID, veterinarian_id: Optional[uuid.UUID] = None
    ) -> List[Appointment]:
        try:
            query = select(Appointment).where(
                Appointment.clinic_id == clinic_id,
                Appointment.appointment_date == utcnow().date(),
            )
            if veterinarian_id is not None:
                query = query.where(Appointment.veterinarian_id == veterinarian_id)
            result = await db.execute(query.order_by(Appointment.appointment_time))
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "list today's appointments", clinic_id=clinic_id)

    async def get_upcoming(self, db: AsyncSession, clinic_id: uuid.UUID, days: int = 7) -> List[Appointment]:
        try:
            today = utcnow().date()
            result = await db.execute(
                select(Appointment)
                .where(
                    Appointment.clinic_id == clinic_id,
                    Appointment.appointment_date >= today,
                    Appointment.appointment_date <= today + timedelta(days=days),
                    Appointment.status.in_(OPEN_STATUSES),
                )
                .order_by(Appointment.appointment_date, Appointment.appointment_time)
            )
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "list upcoming appointments", clinic_id=clinic_id)

    async def get_needing_reminders(
        self, db: AsyncSession, clinic_id: Optional[uuid.UUID] = None
    ) -> List[Appointment]:
        """Tomorrow's open appointments whose reminder has not been sent."""
        try:
            query = select(Appointment).where(
                Appointment.appointment_date == utcnow().date() + timedelta(days=1),
                Appointment.status.in_(OPEN_STATUSES),
                Appointment.reminder_sent.is_(False),
            )
            if clinic_id is not None:
                query = query.where(Appointment.clinic_id == clinic_id)
            result = await db.execute(query.order_by(Appointment.appointment_time))
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "list pending reminders", clinic_id=clinic_id)

    async def mark_reminder_sent(self, db: AsyncSession, clinic_id: uuid.UUID, appointment_id: uuid.UUID) -> Appointment:
        try:
            appointment = await self._get_scoped(db, clinic_id, appointment_id)
            appointment.reminder_sent = True
            await db.flush()
            logger.info("Reminder marked as sent for appointment %s", appointment_id)
            return appointment
        except Exception as e:
            wrap_unexpected(e, "mark reminder sent", appointment_id=appointment_id)


# ── Singleton Instance ────────────────────────────────────────────────────
appointment_service = AppointmentService()

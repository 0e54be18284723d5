"""
VetPintar Backend — Appointment Model
=======================================

What:  ORM model for the `appointments` table.

Scheduling fields:
    appointment_date  DATE (clinic-local calendar day)
    appointment_time  'HH:MM' 24h string
    duration          minutes (default 30)

    A veterinarian's appointments on one day must not overlap, except
    those CANCELLED or NO_SHOW. The check lives in
    services/scheduling.py; the (veterinarian_id, appointment_date) index
    serves its lookup.
"""

import uuid
from datetime import date
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetpintar.database import Base
from vetpintar.models.enums import AppointmentStatus
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column

if TYPE_CHECKING:
    from vetpintar.models.patient import Patient
    from vetpintar.models.user import User


class Appointment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "appointments"

    clinic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clinics.id"), nullable=False
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patients.id"), nullable=False
    )
    veterinarian_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[str] = mapped_column(
        String(5), nullable=False, comment="Start time, HH:MM (24h)"
    )
    duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30, server_default=text("30"),
        comment="Length in minutes",
    )
    type: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Consultation, Vaccination, Surgery, ..."
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        enum_column(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
        server_default=text("'SCHEDULED'"),
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reminder_sent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    patient: Mapped["Patient"] = relationship(lazy="selectin")
    veterinarian: Mapped[Optional["User"]] = relationship(lazy="selectin")

    __table_args__ = (
        Index("idx_appointments_clinic_date", "clinic_id", "appointment_date"),
        Index("idx_appointments_vet_date", "veterinarian_id", "appointment_date"),
        Index("idx_appointments_patient_id", "patient_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, date={self.appointment_date}, "
            f"time='{self.appointment_time}', status='{self.status}')>"
        )

"""
VetPintar Backend — Medical Record and Hospitalization Models
===============================================================

What:  `medical_records` (one row per visit) and `hospitalizations`
       (inpatient stays attached to a visit).

Status coupling:
    admitting a patient     → hospitalization ADMITTED, record INPATIENT
    first discharge_date    → hospitalization DISCHARGED, record DISCHARGED
    A record with an ADMITTED hospitalization cannot be deleted.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetpintar.database import Base
from vetpintar.models.enums import HospitalizationStatus, RecordStatus
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column

if TYPE_CHECKING:
    from vetpintar.models.patient import Patient
    from vetpintar.models.user import User


class MedicalRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "medical_records"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patients.id"), nullable=False
    )
    veterinarian_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clinics.id"), nullable=False
    )
    visit_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    chief_complaint: Mapped[str] = mapped_column(Text, nullable=False)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prescription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    weight: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 2), nullable=True, comment="Kilograms"
    )
    temperature: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(4, 1), nullable=True, comment="Degrees Celsius"
    )
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus),
        nullable=False,
        default=RecordStatus.OUTPATIENT,
        server_default=text("'OUTPATIENT'"),
    )
    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    patient: Mapped["Patient"] = relationship(lazy="selectin")
    veterinarian: Mapped["User"] = relationship(lazy="selectin")
    hospitalizations: Mapped[List["Hospitalization"]] = relationship(
        back_populates="medical_record",
        cascade="all, delete-orphan",
        order_by="Hospitalization.admission_date.desc()",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_medical_records_clinic_visit", "clinic_id", "visit_date"),
        Index("idx_medical_records_patient_id", "patient_id"),
        Index("idx_medical_records_veterinarian_id", "veterinarian_id"),
    )

    def __repr__(self) -> str:
        return f"<MedicalRecord(id={self.id}, patient_id={self.patient_id}, status='{self.status}')>"


class Hospitalization(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "hospitalizations"

    medical_record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("medical_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    admission_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    discharge_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    cage_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    daily_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[HospitalizationStatus] = mapped_column(
        enum_column(HospitalizationStatus),
        nullable=False,
        default=HospitalizationStatus.ADMITTED,
        server_default=text("'ADMITTED'"),
    )

    medical_record: Mapped["MedicalRecord"] = relationship(
        back_populates="hospitalizations", lazy="raise"
    )

    __table_args__ = (
        Index("idx_hospitalizations_record_status", "medical_record_id", "status"),
    )

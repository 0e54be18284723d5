"""
VetPintar Backend — Patient Model
===================================

What:  ORM model for the `patients` table (the animals treated by a clinic).

Table Design:
    - owner_id → users.id (the pet owner, a CUSTOMER or any user with
      access to the clinic)
    - microchip_id is unique per clinic; enforced in PatientService because
      NULLs and soft-deleted rows make a DB constraint awkward
    - is_active = False is the soft-delete marker; rows with medical
      records or invoices are never hard-deleted
"""

import uuid
from datetime import date
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetpintar.database import Base
from vetpintar.models.enums import PatientGender
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column

if TYPE_CHECKING:
    from vetpintar.models.clinic import Clinic
    from vetpintar.models.user import User


class Patient(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "patients"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    species: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Free text: Dog, Cat, Rabbit, ..."
    )
    breed: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gender: Mapped[PatientGender] = mapped_column(
        enum_column(PatientGender),
        nullable=False,
        default=PatientGender.UNKNOWN,
        server_default=text("'UNKNOWN'"),
    )
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    microchip_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clinics.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    owner: Mapped["User"] = relationship(lazy="selectin")
    clinic: Mapped["Clinic"] = relationship(lazy="raise")

    __table_args__ = (
        Index("idx_patients_clinic_active", "clinic_id", "is_active"),
        Index("idx_patients_owner_id", "owner_id"),
        Index("idx_patients_clinic_microchip", "clinic_id", "microchip_id"),
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.name}', species='{self.species}')>"

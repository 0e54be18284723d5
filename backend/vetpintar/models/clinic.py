"""
VetPintar Backend — Clinic and ClinicAccess Models
====================================================

What:  The tenant (`clinics`) and the user↔clinic grant (`clinic_accesses`).

Tenancy:
    Every clinic-owned row (patients, appointments, medical records,
    invoices, products) carries clinic_id. A user reaches a clinic's data
    only through a ClinicAccess row, whose access_role is one of
    OWNER / VETERINARIAN / STAFF / VIEWER. SUPER_ADMIN users bypass it.

    (user_id, clinic_id) is unique: a user holds exactly one role per clinic.
"""

import uuid
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetpintar.database import Base
from vetpintar.models.enums import AccessRole, SubscriptionStatus
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column, utcnow

if TYPE_CHECKING:
    from vetpintar.models.user import User


class Clinic(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "clinics"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    province: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        enum_column(SubscriptionStatus),
        nullable=False,
        default=SubscriptionStatus.TRIAL,
        server_default=text("'TRIAL'"),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    accesses: Mapped[List["ClinicAccess"]] = relationship(
        back_populates="clinic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_clinics_city", "city"),
        Index("idx_clinics_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Clinic(id={self.id}, name='{self.name}')>"


class ClinicAccess(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "clinic_accesses"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
    )
    access_role: Mapped[AccessRole] = mapped_column(
        enum_column(AccessRole),
        nullable=False,
        default=AccessRole.STAFF,
    )
    granted_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # selectin: a user's clinic list is needed on every login/me response
    user: Mapped["User"] = relationship(back_populates="clinic_accesses", lazy="selectin")
    clinic: Mapped["Clinic"] = relationship(back_populates="accesses", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "clinic_id", name="uq_clinic_accesses_user_clinic"),
        Index("idx_clinic_accesses_clinic_id", "clinic_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClinicAccess(user_id={self.user_id}, clinic_id={self.clinic_id}, "
            f"access_role='{self.access_role}')>"
        )

"""
VetPintar Backend — User Model
================================

What:  ORM model for the `users` table (staff, veterinarians and pet owners).
Who:   AuthService, UserService, and every service that links a record to a
       person (patient owner, appointment veterinarian, invoice owner).

Table Design:
    - email is globally unique (login identifier)
    - role is the platform role; per-clinic roles live in clinic_accesses
    - is_active = False is the soft-delete marker
    - password_hash is never serialized (schemas omit it)
"""

from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetpintar.database import Base
from vetpintar.models.enums import UserRole
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column

if TYPE_CHECKING:
    from vetpintar.models.clinic import ClinicAccess


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Login identifier, stored lower-cased",
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt hash (passlib)",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole),
        nullable=False,
        default=UserRole.CUSTOMER,
        server_default=text("'CUSTOMER'"),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    clinic_accesses: Mapped[List["ClinicAccess"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClinicAccess.granted_at",
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

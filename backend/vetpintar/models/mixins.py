"""
Shared column definitions for every table.

    id          UUID primary key (Python uuid4, server gen_random_uuid())
    created_at  TIMESTAMP WITH TIME ZONE, UTC
    updated_at  TIMESTAMP WITH TIME ZONE, UTC, refreshed on every UPDATE

Timestamps are set on the Python side so that, after a flush, the values
are already present on the instance and never need a lazy refresh (which
async sessions cannot do).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import Enum as SAEnum, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_column(enum_cls: Type[PyEnum], length: int = 20) -> SAEnum:
    """VARCHAR-backed enum type; values are validated in Python, not by PG."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
    )


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

"""
VetPintar Backend — User Schemas
==================================

What:  Request and response models for /api/users and the `user` object
       returned by /api/auth.

Security:
    No response model declares `password_hash`, so it can never be
    serialized even when an ORM User is validated directly.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from vetpintar.models.enums import AccessRole, UserRole
from vetpintar.schemas.common import ClinicAccessSummary


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    role: UserRole = UserRole.CUSTOMER


class UserUpdate(BaseModel):
    """Email is intentionally absent; it is the login identity."""
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None
    role: Optional[UserRole] = None


class PasswordUpdate(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)


class PasswordReset(BaseModel):
    new_password: str = Field(min_length=8, max_length=128)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserDetailResponse(UserResponse):
    """User plus clinic memberships (GET /api/users/{id}, GET /api/auth/me)."""
    clinic_accesses: List[ClinicAccessSummary] = Field(default_factory=list)


class ClinicUserResponse(UserResponse):
    """A clinic member: the user plus their role inside that clinic."""
    access_role: AccessRole
    granted_at: datetime


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: Dict[str, int]

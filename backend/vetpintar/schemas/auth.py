"""
VetPintar Backend — Auth Schemas
==================================

What:  Bodies for /api/auth/* and the login payload returned by login,
       register, refresh and google-login.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from vetpintar.models.enums import AccessRole, UserRole
from vetpintar.schemas.common import ClinicAccessSummary, ClinicSummary
from vetpintar.schemas.user import UserResponse


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    clinic_id: Optional[uuid.UUID] = Field(
        default=None, description="Clinic to sign into; defaults to the first granted clinic"
    )


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    role: UserRole = UserRole.CUSTOMER
    clinic_id: Optional[uuid.UUID] = None
    access_role: AccessRole = Field(
        default=AccessRole.VIEWER,
        description="Role granted in clinic_id, when clinic_id is given",
    )


class GoogleLoginRequest(BaseModel):
    id_token: str = Field(min_length=1, description="Google ID token from the client SDK")
    clinic_id: Optional[uuid.UUID] = None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)


class AuthResponse(BaseModel):
    """
    Returned by login, register, refresh and google-login.

    `clinics` lists every membership; `current_clinic` is the clinic baked
    into the access token's `clinic_id` claim (null when the user has none).
    """
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
    clinics: List[ClinicAccessSummary] = Field(default_factory=list)
    current_clinic: Optional[ClinicSummary] = None

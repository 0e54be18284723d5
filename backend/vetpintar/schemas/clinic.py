"""
VetPintar Backend — Clinic Schemas
====================================
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from vetpintar.models.enums import AccessRole, SubscriptionStatus


class ClinicCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=100)
    province: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    logo_url: Optional[str] = Field(default=None, max_length=500)


class ClinicUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=100)
    province: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    logo_url: Optional[str] = Field(default=None, max_length=500)
    subscription_status: Optional[SubscriptionStatus] = None
    is_active: Optional[bool] = None


class ClinicUserAdd(BaseModel):
    user_id: uuid.UUID
    access_role: AccessRole = AccessRole.STAFF


class ClinicResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    logo_url: Optional[str] = None
    subscription_status: SubscriptionStatus
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MyClinicResponse(ClinicResponse):
    """A clinic as seen by one member (GET /api/clinics/my)."""
    access_role: AccessRole
    granted_at: datetime


class ClinicAccessResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    clinic_id: uuid.UUID
    access_role: AccessRole
    granted_at: datetime

    model_config = {"from_attributes": True}


class ClinicStats(BaseModel):
    total_patients: int
    active_patients: int
    total_invoices: int
    total_products: int
    total_users: int
    monthly_revenue: Decimal = Field(description="PAID invoices issued this month")

"""
VetPintar Backend — Appointment Schemas
=========================================

Time format:
    appointment_time is a 24-hour "HH:MM" string. A single leading digit
    for the hour ("9:30") is accepted, matching what the scheduling helpers
    parse.
"""

import uuid
from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from vetpintar.models.enums import AppointmentStatus
from vetpintar.schemas.common import PatientSummary, VeterinarianSummary

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class AppointmentCreate(BaseModel):
    patient_id: uuid.UUID
    veterinarian_id: Optional[uuid.UUID] = None
    appointment_date: date
    appointment_time: str = Field(pattern=TIME_PATTERN, description="HH:MM, 24h")
    duration: int = Field(default=30, ge=5, le=480, description="Minutes")
    type: str = Field(min_length=1, max_length=100)
    reason: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    veterinarian_id: Optional[uuid.UUID] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    duration: Optional[int] = Field(default=None, ge=5, le=480)
    type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    status: Optional[AppointmentStatus] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    id: uuid.UUID
    clinic_id: uuid.UUID
    patient_id: uuid.UUID
    veterinarian_id: Optional[uuid.UUID] = None
    appointment_date: date
    appointment_time: str
    duration: int
    type: str
    status: AppointmentStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    reminder_sent: bool
    created_at: datetime
    updated_at: datetime
    patient: Optional[PatientSummary] = None
    veterinarian: Optional[VeterinarianSummary] = None

    model_config = {"from_attributes": True}


class AppointmentStats(BaseModel):
    total: int
    today: int
    upcoming: int = Field(description="SCHEDULED or CONFIRMED from today on")
    completed: int
    cancelled: int = Field(description="CANCELLED plus NO_SHOW")
    status_distribution: Dict[str, int]

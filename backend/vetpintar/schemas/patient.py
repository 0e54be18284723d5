"""
VetPintar Backend — Patient Schemas
=====================================
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from vetpintar.models.enums import InvoiceStatus, PatientGender, RecordStatus
from vetpintar.schemas.common import SpeciesCount, UserSummary


class PatientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    species: str = Field(min_length=1, max_length=100)
    breed: Optional[str] = Field(default=None, max_length=100)
    gender: PatientGender = PatientGender.UNKNOWN
    birth_date: Optional[date] = None
    color: Optional[str] = Field(default=None, max_length=100)
    microchip_id: Optional[str] = Field(default=None, max_length=100)
    photo_url: Optional[str] = Field(default=None, max_length=500)
    owner_id: uuid.UUID


class PatientUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    species: Optional[str] = Field(default=None, min_length=1, max_length=100)
    breed: Optional[str] = Field(default=None, max_length=100)
    gender: Optional[PatientGender] = None
    birth_date: Optional[date] = None
    color: Optional[str] = Field(default=None, max_length=100)
    microchip_id: Optional[str] = Field(default=None, max_length=100)
    photo_url: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


class PatientResponse(BaseModel):
    id: uuid.UUID
    name: str
    species: str
    breed: Optional[str] = None
    gender: PatientGender
    birth_date: Optional[date] = None
    color: Optional[str] = None
    microchip_id: Optional[str] = None
    photo_url: Optional[str] = None
    owner_id: uuid.UUID
    clinic_id: uuid.UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime
    owner: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class PatientRecordSummary(BaseModel):
    id: uuid.UUID
    visit_date: datetime
    chief_complaint: str
    diagnosis: Optional[str] = None
    status: RecordStatus

    model_config = {"from_attributes": True}


class PatientInvoiceSummary(BaseModel):
    id: uuid.UUID
    invoice_number: str
    issue_date: date
    total_amount: Decimal
    status: InvoiceStatus

    model_config = {"from_attributes": True}


class PatientDetailResponse(PatientResponse):
    """Patient with the 10 most recent medical records and invoices."""
    medical_records: List[PatientRecordSummary] = Field(default_factory=list)
    invoices: List[PatientInvoiceSummary] = Field(default_factory=list)


class PatientStats(BaseModel):
    total: int
    active: int
    new_this_month: int
    species_distribution: List[SpeciesCount]

"""
VetPintar Backend — Medical Record and Hospitalization Schemas
================================================================
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from vetpintar.models.enums import HospitalizationStatus, RecordStatus
from vetpintar.models.mixins import utcnow
from vetpintar.schemas.common import PatientSummary, VeterinarianSummary


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class MedicalRecordCreate(BaseModel):
    patient_id: uuid.UUID
    veterinarian_id: Optional[uuid.UUID] = Field(
        default=None, description="Defaults to the calling user"
    )
    visit_date: datetime = Field(default_factory=utcnow)
    chief_complaint: str = Field(min_length=1)
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[Decimal] = Field(default=None, ge=0, le=5000, description="kg")
    temperature: Optional[Decimal] = Field(default=None, ge=20, le=50, description="°C")
    status: RecordStatus = RecordStatus.OUTPATIENT
    total_amount: Optional[Decimal] = Field(default=None, ge=0)


class MedicalRecordUpdate(BaseModel):
    visit_date: Optional[datetime] = None
    chief_complaint: Optional[str] = Field(default=None, min_length=1)
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[Decimal] = Field(default=None, ge=0, le=5000)
    temperature: Optional[Decimal] = Field(default=None, ge=20, le=50)
    status: Optional[RecordStatus] = None
    total_amount: Optional[Decimal] = Field(default=None, ge=0)


class HospitalizationCreate(BaseModel):
    admission_date: datetime = Field(default_factory=utcnow)
    cage_number: Optional[str] = Field(default=None, max_length=50)
    daily_notes: Optional[str] = None


class HospitalizationUpdate(BaseModel):
    """Setting discharge_date for the first time discharges the patient."""
    discharge_date: Optional[datetime] = None
    cage_number: Optional[str] = Field(default=None, max_length=50)
    daily_notes: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class HospitalizationResponse(BaseModel):
    id: uuid.UUID
    medical_record_id: uuid.UUID
    admission_date: datetime
    discharge_date: Optional[datetime] = None
    cage_number: Optional[str] = None
    daily_notes: Optional[str] = None
    status: HospitalizationStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MedicalRecordResponse(BaseModel):
    id: uuid.UUID
    patient_id: uuid.UUID
    veterinarian_id: uuid.UUID
    clinic_id: uuid.UUID
    visit_date: datetime
    chief_complaint: str
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[Decimal] = None
    temperature: Optional[Decimal] = None
    status: RecordStatus
    total_amount: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime
    patient: Optional[PatientSummary] = None
    veterinarian: Optional[VeterinarianSummary] = None
    hospitalizations: List[HospitalizationResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class MedicalRecordStats(BaseModel):
    total_records: int
    outpatient: int
    inpatient: int
    discharged: int
    referred: int
    average_visit_cost: Decimal
    monthly_visits: Dict[str, int] = Field(description="YYYY-MM → visit count")

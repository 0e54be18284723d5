"""
VetPintar Backend — Medical Record Routes
===========================================

What:  /api/medical-records — visit records and hospitalizations.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import ClinicContext, clinic_reader, clinic_writer
from vetpintar.models.enums import RecordStatus
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.schemas.medical_record import (
    HospitalizationCreate,
    HospitalizationResponse,
    HospitalizationUpdate,
    MedicalRecordCreate,
    MedicalRecordResponse,
    MedicalRecordStats,
    MedicalRecordUpdate,
)
from vetpintar.services.medical_record_service import medical_record_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medical-records", tags=["Medical Records"])

_NOT_FOUND = {404: {"description": "Medical record not found", "model": ErrorResponse}}


@router.get("", response_model=PaginatedResponse[MedicalRecordResponse], summary="List medical records")
async def list_medical_records(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    patient_id: Optional[uuid.UUID] = Query(default=None),
    veterinarian_id: Optional[uuid.UUID] = Query(default=None),
    status: Optional[RecordStatus] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None),
    date_to: Optional[datetime] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Matches complaint, diagnosis, treatment or patient"),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    result = await medical_record_service.list_medical_records(
        db,
        ctx.clinic_id,
        page=page,
        limit=limit,
        patient_id=patient_id,
        veterinarian_id=veterinarian_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, MedicalRecordResponse)


@router.get("/stats", response_model=ApiResponse[MedicalRecordStats], summary="Visit statistics")
async def get_stats(
    date_from: Optional[datetime] = Query(default=None),
    date_to: Optional[datetime] = Query(default=None),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    stats = await medical_record_service.get_stats(db, ctx.clinic_id, date_from, date_to)
    return ApiResponse(data=MedicalRecordStats(**stats))


@router.get(
    "/patient/{patient_id}",
    response_model=ApiResponse[List[MedicalRecordResponse]],
    responses={404: {"description": "Patient not found", "model": ErrorResponse}},
    summary="Full visit history of one patient",
)
async def get_patient_records(
    patient_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    records = await medical_record_service.get_patient_records(db, ctx.clinic_id, patient_id)
    return ApiResponse(data=[MedicalRecordResponse.model_validate(r) for r in records])


@router.get("/{record_id}", response_model=ApiResponse[MedicalRecordResponse], responses=_NOT_FOUND)
async def get_medical_record(
    record_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    record = await medical_record_service.get_medical_record(db, ctx.clinic_id, record_id)
    return ApiResponse(data=MedicalRecordResponse.model_validate(record))


@router.post(
    "",
    response_model=ApiResponse[MedicalRecordResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Patient or veterinarian not found", "model": ErrorResponse}},
    summary="Record a visit",
)
async def create_medical_record(
    body: MedicalRecordCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    record = await medical_record_service.create_medical_record(db, ctx.clinic_id, body, ctx.user.id)
    return ApiResponse(
        message="Medical record created successfully",
        data=MedicalRecordResponse.model_validate(record),
    )


@router.put("/{record_id}", response_model=ApiResponse[MedicalRecordResponse], responses=_NOT_FOUND)
async def update_medical_record(
    record_id: uuid.UUID,
    body: MedicalRecordUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    record = await medical_record_service.update_medical_record(db, ctx.clinic_id, record_id, body)
    return ApiResponse(
        message="Medical record updated successfully",
        data=MedicalRecordResponse.model_validate(record),
    )


@router.delete(
    "/{record_id}",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, 400: {"description": "Patient is hospitalized", "model": ErrorResponse}},
)
async def delete_medical_record(
    record_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    await medical_record_service.delete_medical_record(db, ctx.clinic_id, record_id)
    return MessageResponse(message="Medical record deleted successfully")


# ── Hospitalization ───────────────────────────────────────────────────────


@router.post(
    "/{record_id}/hospitalizations",
    response_model=ApiResponse[HospitalizationResponse],
    status_code=status.HTTP_201_CREATED,
    responses={**_NOT_FOUND, 400: {"description": "Already hospitalized", "model": ErrorResponse}},
    summary="Admit the patient",
)
async def admit_patient(
    record_id: uuid.UUID,
    body: HospitalizationCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    hospitalization = await medical_record_service.admit_patient(db, ctx.clinic_id, record_id, body)
    return ApiResponse(
        message="Patient admitted successfully",
        data=HospitalizationResponse.model_validate(hospitalization),
    )


@router.put(
    "/hospitalizations/{hospitalization_id}",
    response_model=ApiResponse[HospitalizationResponse],
    responses={404: {"description": "Hospitalization not found", "model": ErrorResponse}},
    summary="Update a stay; setting discharge_date discharges the patient",
)
async def update_hospitalization(
    hospitalization_id: uuid.UUID,
    body: HospitalizationUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    hospitalization = await medical_record_service.update_hospitalization(
        db, ctx.clinic_id, hospitalization_id, body
    )
    return ApiResponse(
        message="Hospitalization updated successfully",
        data=HospitalizationResponse.model_validate(hospitalization),
    )

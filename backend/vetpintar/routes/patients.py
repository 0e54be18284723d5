"""
VetPintar Backend — Patient Routes
====================================

What:  /api/patients — animals registered at the caller's clinic.
How:   Reads need clinic access; writes additionally reject VIEWER members.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import ClinicContext, clinic_reader, clinic_writer
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.schemas.patient import (
    PatientCreate,
    PatientDetailResponse,
    PatientInvoiceSummary,
    PatientRecordSummary,
    PatientResponse,
    PatientStats,
    PatientUpdate,
)
from vetpintar.services.patient_service import patient_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])

_NOT_FOUND = {404: {"description": "Patient not found", "model": ErrorResponse}}


@router.get("", response_model=PaginatedResponse[PatientResponse], summary="List patients")
async def list_patients(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    owner_id: Optional[uuid.UUID] = Query(default=None),
    species: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Matches name, breed or microchip ID"),
    is_active: Optional[bool] = Query(default=True),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    result = await patient_service.list_patients(
        db,
        ctx.clinic_id,
        page=page,
        limit=limit,
        owner_id=owner_id,
        species=species,
        search=search,
        is_active=is_active,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, PatientResponse)


@router.get("/stats", response_model=ApiResponse[PatientStats], summary="Patient counters")
async def get_patient_stats(
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=PatientStats(**await patient_service.get_patient_stats(db, ctx.clinic_id)))


@router.get(
    "/{patient_id}",
    response_model=ApiResponse[PatientDetailResponse],
    responses=_NOT_FOUND,
    summary="Get a patient with recent history",
)
async def get_patient(
    patient_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    patient, records, invoices = await patient_service.get_patient(db, ctx.clinic_id, patient_id)
    detail = PatientDetailResponse.model_validate(patient).model_copy(update={
        "medical_records": [PatientRecordSummary.model_validate(r) for r in records],
        "invoices": [PatientInvoiceSummary.model_validate(i) for i in invoices],
    })
    return ApiResponse(data=detail)


@router.post(
    "",
    response_model=ApiResponse[PatientResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Owner not found in this clinic", "model": ErrorResponse},
        409: {"description": "Duplicate microchip ID", "model": ErrorResponse},
    },
    summary="Register a patient",
)
async def create_patient(
    body: PatientCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    patient = await patient_service.create_patient(db, ctx.clinic_id, body)
    return ApiResponse(message="Patient created successfully", data=PatientResponse.model_validate(patient))


@router.put(
    "/{patient_id}",
    response_model=ApiResponse[PatientResponse],
    responses={**_NOT_FOUND, 409: {"description": "Duplicate microchip ID", "model": ErrorResponse}},
    summary="Update a patient",
)
async def update_patient(
    patient_id: uuid.UUID,
    body: PatientUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    patient = await patient_service.update_patient(db, ctx.clinic_id, patient_id, body)
    return ApiResponse(message="Patient updated successfully", data=PatientResponse.model_validate(patient))


@router.delete("/{patient_id}", response_model=MessageResponse, responses=_NOT_FOUND, summary="Delete a patient")
async def delete_patient(
    patient_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    if await patient_service.delete_patient(db, ctx.clinic_id, patient_id):
        return MessageResponse(message="Patient deleted successfully")
    return MessageResponse(message="Patient has medical history and was deactivated")

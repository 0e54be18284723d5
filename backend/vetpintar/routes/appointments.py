"""
VetPintar Backend — Appointment Routes
========================================

What:  /api/appointments — booking, rescheduling, status changes and the
       today / upcoming / reminder views.

Fixed paths (/today, /upcoming, /stats, /reminders/pending) are declared
before /{appointment_id} so they are not captured as IDs.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import ClinicContext, clinic_reader, clinic_writer
from vetpintar.models.enums import AppointmentStatus
from vetpintar.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStats,
    AppointmentStatusUpdate,
    AppointmentUpdate,
)
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.services.appointment_service import appointment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])

_NOT_FOUND = {404: {"description": "Appointment not found", "model": ErrorResponse}}
_CONFLICT = {409: {"description": "Veterinarian is already booked", "model": ErrorResponse}}


def _many(appointments) -> List[AppointmentResponse]:
    return [AppointmentResponse.model_validate(a) for a in appointments]


@router.get("/today", response_model=ApiResponse[List[AppointmentResponse]], summary="Today's appointments")
async def get_today(
    veterinarian_id: Optional[uuid.UUID] = Query(default=None),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=_many(await appointment_service.get_today(db, ctx.clinic_id, veterinarian_id)))


@router.get(
    "/upcoming",
    response_model=ApiResponse[List[AppointmentResponse]],
    summary="Open appointments in the next N days",
)
async def get_upcoming(
    days: int = Query(default=7, ge=1, le=90),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=_many(await appointment_service.get_upcoming(db, ctx.clinic_id, days)))


@router.get("/stats", response_model=ApiResponse[AppointmentStats], summary="Appointment counters")
async def get_stats(
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=AppointmentStats(**await appointment_service.get_stats(db, ctx.clinic_id)))


@router.get(
    "/reminders/pending",
    response_model=ApiResponse[List[AppointmentResponse]],
    summary="Tomorrow's appointments still waiting for a reminder",
)
async def get_pending_reminders(
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=_many(await appointment_service.get_needing_reminders(db, ctx.clinic_id)))


@router.get("", response_model=PaginatedResponse[AppointmentResponse], summary="List appointments")
async def list_appointments(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    patient_id: Optional[uuid.UUID] = Query(default=None),
    veterinarian_id: Optional[uuid.UUID] = Query(default=None),
    status: Optional[AppointmentStatus] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Matches type, reason, notes, patient or owner name"),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    result = await appointment_service.list_appointments(
        db,
        ctx.clinic_id,
        page=page,
        limit=limit,
        patient_id=patient_id,
        veterinarian_id=veterinarian_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, AppointmentResponse)


@router.get("/{appointment_id}", response_model=ApiResponse[AppointmentResponse], responses=_NOT_FOUND)
async def get_appointment(
    appointment_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    appointment = await appointment_service.get_appointment(db, ctx.clinic_id, appointment_id)
    return ApiResponse(data=AppointmentResponse.model_validate(appointment))


@router.post(
    "",
    response_model=ApiResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Patient or veterinarian not found", "model": ErrorResponse}, **_CONFLICT},
    summary="Book an appointment",
)
async def create_appointment(
    body: AppointmentCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    appointment = await appointment_service.create_appointment(db, ctx.clinic_id, body)
    return ApiResponse(
        message="Appointment created successfully",
        data=AppointmentResponse.model_validate(appointment),
    )


@router.put(
    "/{appointment_id}",
    response_model=ApiResponse[AppointmentResponse],
    responses={**_NOT_FOUND, **_CONFLICT},
    summary="Update or reschedule an appointment",
)
async def update_appointment(
    appointment_id: uuid.UUID,
    body: AppointmentUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    appointment = await appointment_service.update_appointment(db, ctx.clinic_id, appointment_id, body)
    return ApiResponse(
        message="Appointment updated successfully",
        data=AppointmentResponse.model_validate(appointment),
    )


@router.patch("/{appointment_id}/status", response_model=ApiResponse[AppointmentResponse], responses=_NOT_FOUND)
async def update_appointment_status(
    appointment_id: uuid.UUID,
    body: AppointmentStatusUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    appointment = await appointment_service.update_status(db, ctx.clinic_id, appointment_id, body.status)
    return ApiResponse(
        message="Appointment status updated successfully",
        data=AppointmentResponse.model_validate(appointment),
    )


@router.post("/{appointment_id}/reminder", response_model=ApiResponse[AppointmentResponse], responses=_NOT_FOUND)
async def mark_reminder_sent(
    appointment_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    appointment = await appointment_service.mark_reminder_sent(db, ctx.clinic_id, appointment_id)
    return ApiResponse(message="Reminder marked as sent", data=AppointmentResponse.model_validate(appointment))


@router.delete(
    "/{appointment_id}",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, 400: {"description": "Completed or in progress", "model": ErrorResponse}},
)
async def delete_appointment(
    appointment_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    await appointment_service.delete_appointment(db, ctx.clinic_id, appointment_id)
    return MessageResponse(message="Appointment deleted successfully")

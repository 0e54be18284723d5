"""
VetPintar Backend — Invoice Routes
====================================

What:  /api/invoices — billing, status changes and payments.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import ClinicContext, clinic_reader, clinic_writer
from vetpintar.models.enums import InvoiceStatus
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.schemas.invoice import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceStats,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResponse,
    PaymentResult,
)
from vetpintar.services.invoice_service import invoice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])

_NOT_FOUND = {404: {"description": "Invoice not found", "model": ErrorResponse}}
_RULE = {400: {"description": "Not allowed in the invoice's current status", "model": ErrorResponse}}


@router.get("", response_model=PaginatedResponse[InvoiceResponse], summary="List invoices")
async def list_invoices(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    patient_id: Optional[uuid.UUID] = Query(default=None),
    owner_id: Optional[uuid.UUID] = Query(default=None),
    status: Optional[InvoiceStatus] = Query(default=None),
    date_from: Optional[date] = Query(default=None, description="Issue date from"),
    date_to: Optional[date] = Query(default=None, description="Issue date to"),
    search: Optional[str] = Query(default=None, description="Matches number, patient or owner name"),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    result = await invoice_service.list_invoices(
        db,
        ctx.clinic_id,
        page=page,
        limit=limit,
        patient_id=patient_id,
        owner_id=owner_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, InvoiceResponse)


@router.get("/stats", response_model=ApiResponse[InvoiceStats], summary="Billing statistics")
async def get_stats(
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=InvoiceStats(**await invoice_service.get_stats(db, ctx.clinic_id)))


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], responses=_NOT_FOUND)
async def get_invoice(
    invoice_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    invoice = await invoice_service.get_invoice(db, ctx.clinic_id, invoice_id)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.post(
    "",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Patient not found", "model": ErrorResponse}},
    summary="Create an invoice (DRAFT)",
)
async def create_invoice(
    body: InvoiceCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    invoice = await invoice_service.create_invoice(db, ctx.clinic_id, body)
    return ApiResponse(message="Invoice created successfully", data=InvoiceResponse.model_validate(invoice))


@router.put("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], responses={**_NOT_FOUND, **_RULE})
async def update_invoice(
    invoice_id: uuid.UUID,
    body: InvoiceUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    invoice = await invoice_service.update_invoice(db, ctx.clinic_id, invoice_id, body)
    return ApiResponse(message="Invoice updated successfully", data=InvoiceResponse.model_validate(invoice))


@router.put("/{invoice_id}/status", response_model=ApiResponse[InvoiceResponse], responses={**_NOT_FOUND, **_RULE})
async def update_invoice_status(
    invoice_id: uuid.UUID,
    body: InvoiceStatusUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    invoice = await invoice_service.update_status(db, ctx.clinic_id, invoice_id, body.status)
    return ApiResponse(
        message="Invoice status updated successfully",
        data=InvoiceResponse.model_validate(invoice),
    )


@router.post(
    "/{invoice_id}/payments",
    response_model=ApiResponse[PaymentResult],
    status_code=status.HTTP_201_CREATED,
    responses={**_NOT_FOUND, **_RULE},
    summary="Record a payment",
)
async def add_payment(
    invoice_id: uuid.UUID,
    body: PaymentCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    result = await invoice_service.add_payment(db, ctx.clinic_id, invoice_id, body)
    return ApiResponse(
        message="Payment recorded successfully",
        data=PaymentResult(
            payment=PaymentResponse.model_validate(result["payment"]),
            invoice=InvoiceResponse.model_validate(result["invoice"]),
        ),
    )


@router.delete("/{invoice_id}", response_model=MessageResponse, responses=_NOT_FOUND)
async def delete_invoice(
    invoice_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    if await invoice_service.delete_invoice(db, ctx.clinic_id, invoice_id):
        return MessageResponse(message="Invoice deleted successfully")
    return MessageResponse(message="Invoice has payments and was cancelled")

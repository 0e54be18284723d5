"""
VetPintar Backend — Invoice and Payment Schemas
=================================================

Money fields are Decimal and serialize to JSON strings ("150000.00") so no
precision is lost between client and database.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from vetpintar.models.enums import InvoiceStatus, PaymentMethod, PaymentStatus
from vetpintar.schemas.common import PatientSummary, UserSummary


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class InvoiceItemCreate(BaseModel):
    product_id: Optional[uuid.UUID] = None
    description: str = Field(min_length=1, max_length=500)
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class InvoiceCreate(BaseModel):
    patient_id: uuid.UUID
    owner_id: uuid.UUID
    due_date: Optional[date] = None
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    items: List[InvoiceItemCreate] = Field(min_length=1)


class InvoiceUpdate(BaseModel):
    """Passing `items` replaces every line item and recomputes totals."""
    due_date: Optional[date] = None
    tax_amount: Optional[Decimal] = Field(default=None, ge=0)
    discount_amount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    items: Optional[List[InvoiceItemCreate]] = Field(default=None, min_length=1)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod
    transaction_id: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class InvoiceItemResponse(BaseModel):
    id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: uuid.UUID
    invoice_id: uuid.UUID
    amount: Decimal
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    status: PaymentStatus
    payment_date: datetime
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: uuid.UUID
    invoice_number: str
    clinic_id: uuid.UUID
    patient_id: uuid.UUID
    owner_id: uuid.UUID
    issue_date: date
    due_date: Optional[date] = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime
    updated_at: datetime
    patient: Optional[PatientSummary] = None
    owner: Optional[UserSummary] = None
    items: List[InvoiceItemResponse] = Field(default_factory=list)
    payments: List[PaymentResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    payment: PaymentResponse
    invoice: InvoiceResponse


class InvoiceStats(BaseModel):
    total_invoices: int
    total_revenue: Decimal = Field(description="Sum of PAID invoice totals")
    paid_invoices: int
    unpaid_invoices: int = Field(description="Invoices in SENT")
    overdue_invoices: int = Field(description="SENT or PARTIAL past their due date")
    average_invoice_value: Decimal
    monthly_revenue: Decimal = Field(description="PAID invoices issued this month")

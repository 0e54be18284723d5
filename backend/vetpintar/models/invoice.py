"""
VetPintar Backend — Invoice, InvoiceItem and Payment Models
=============================================================

What:  Billing tables: `invoices`, `invoice_items`, `payments`.

Money:
    All amounts are NUMERIC(12,2) mapped to Decimal. Totals are computed in
    services/billing.py and stored; they are never recomputed on read.

Status lifecycle:
    DRAFT → SENT → PARTIAL → PAID
    Any non-PAID invoice may move to OVERDUE or CANCELLED. An invoice with
    payments is cancelled instead of deleted.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetpintar.database import Base
from vetpintar.models.enums import InvoiceStatus, PaymentMethod, PaymentStatus
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column, utcnow

if TYPE_CHECKING:
    from vetpintar.models.patient import Patient
    from vetpintar.models.product import Product
    from vetpintar.models.user import User


class Invoice(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True,
        comment="INV-<clinic suffix>-<YYYYMM>-<random>",
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clinics.id"), nullable=False
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patients.id"), nullable=False
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False, default=lambda: utcnow().date())
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        enum_column(InvoiceStatus),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        server_default=text("'DRAFT'"),
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        enum_column(PaymentMethod), nullable=True
    )

    patient: Mapped["Patient"] = relationship(lazy="selectin")
    owner: Mapped["User"] = relationship(lazy="selectin")
    items: Mapped[List["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payments: Mapped[List["Payment"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.payment_date",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_invoices_clinic_issue", "clinic_id", "issue_date"),
        Index("idx_invoices_clinic_status", "clinic_id", "status"),
        Index("idx_invoices_patient_id", "patient_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, number='{self.invoice_number}', "
            f"total={self.total_amount}, status='{self.status}')>"
        )


class InvoiceItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "invoice_items"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("products.id"), nullable=True
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="items", lazy="raise")
    product: Mapped[Optional["Product"]] = relationship(lazy="raise")

    __table_args__ = (
        Index("idx_invoice_items_invoice_id", "invoice_id"),
        Index("idx_invoice_items_product_id", "product_id"),
    )


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "payments"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod), nullable=False
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        enum_column(PaymentStatus),
        nullable=False,
        default=PaymentStatus.SUCCESS,
        server_default=text("'SUCCESS'"),
    )
    payment_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invoice: Mapped["Invoice"] = relationship(back_populates="payments", lazy="raise")

    __table_args__ = (
        Index("idx_payments_invoice_id", "invoice_id"),
    )

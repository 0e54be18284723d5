"""
VetPintar Backend — Invoice Service
=====================================

What:  Invoices, their line items and the payments recorded against them.
How:   All arithmetic lives in services/billing.py; this module persists the
       results and enforces the lifecycle.
Who:   routes/invoices.py.

Lifecycle:
    create            → DRAFT, totals computed from the items
    update            → items replaced and totals recomputed (not when PAID)
    add_payment       → SUCCESS payment; status via resolve_payment_status
    delete            → CANCELLED when payments exist, removed otherwise

Events:
    invoice-created   {invoice_id, invoice_number, patient_name, owner_name, total_amount}
    invoice-updated   {invoice_id, invoice_number, status, total_amount}
    payment-received  {invoice_id, invoice_number, payment_amount, remaining_balance, status}
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from vetpintar.exceptions import BusinessRuleError, ConflictError, NotFoundError
from vetpintar.models.enums import InvoiceStatus, PaymentStatus
from vetpintar.models.invoice import Invoice, InvoiceItem, Payment
from vetpintar.models.mixins import utcnow
from vetpintar.models.patient import Patient
from vetpintar.models.product import Product
from vetpintar.models.user import User
from vetpintar.schemas.invoice import InvoiceCreate, InvoiceItemCreate, InvoiceUpdate, PaymentCreate
from vetpintar.services.base_service import (
    Page,
    changed_fields,
    paginate,
    search_filter,
    wrap_unexpected,
)
from vetpintar.services.billing import (
    ZERO,
    compute_totals,
    generate_invoice_number,
    item_total,
    remaining_balance,
    resolve_payment_status,
    to_money,
)
from vetpintar.services.notification_service import notification_service

logger = logging.getLogger(__name__)

INVOICE_NUMBER_ATTEMPTS = 5
CLEARABLE_FIELDS = {"due_date", "notes", "payment_method"}


def _build_items(items: Iterable[InvoiceItemCreate]) -> List[InvoiceItem]:
    return [
        InvoiceItem(
            product_id=item.product_id,
            description=item.description,
            quantity=item.quantity,
            unit_price=to_money(item.unit_price),
            discount_percent=item.discount_percent,
            total_price=item_total(item.quantity, item.unit_price, item.discount_percent),
        )
        for item in items
    ]


def _paid_amount(invoice: Invoice) -> Decimal:
    return to_money(sum(
        (p.amount for p in invoice.payments if p.status == PaymentStatus.SUCCESS), ZERO
    ))


class InvoiceService:

    async def _get_scoped(self, db: AsyncSession, clinic_id: uuid.UUID, invoice_id: uuid.UUID) -> Invoice:
        result = await db.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.clinic_id == clinic_id)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError(resource="invoice", message="Invoice not found")
        return invoice

    async def _unique_invoice_number(self, db: AsyncSession, clinic_id: uuid.UUID) -> str:
        for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
            number = generate_invoice_number(clinic_id, utcnow())
            taken = await db.execute(select(Invoice.id).where(Invoice.invoice_number == number))
            if taken.scalar_one_or_none() is None:
                return number
            logger.warning("Invoice number %s already taken (attempt %d)", number, attempt)
        raise ConflictError("Could not generate a unique invoice number. Please try again.")

    async def _ensure_products(
        self, db: AsyncSession, clinic_id: uuid.UUID, items: Iterable[InvoiceItemCreate]
    ) -> None:
        """Every linked product must belong to the invoicing clinic."""
        wanted = {item.product_id for item in items if item.product_id is not None}
        if not wanted:
            return
        result = await db.execute(
            select(Product.id).where(Product.id.in_(wanted), Product.clinic_id == clinic_id)
        )
        missing = wanted - set(result.scalars().all())
        if missing:
            raise NotFoundError(
                resource="product",
                message="Product not found",
                context={"product_ids": sorted(str(product_id) for product_id in missing)},
            )

    # ── CRUD ──────────────────────────────────────────────────────────────

    async def create_invoice(self, db: AsyncSession, clinic_id: uuid.UUID, data: InvoiceCreate) -> Invoice:
        try:
            patient = (await db.execute(
                select(Patient).where(
                    Patient.id == data.patient_id,
                    Patient.clinic_id == clinic_id,
                    Patient.owner_id == data.owner_id,
                )
            )).scalar_one_or_none()
            if patient is None:
                raise NotFoundError(resource="patient", message="Patient not found or access denied")
            await self._ensure_products(db, clinic_id, data.items)

            totals = compute_totals(
                ((i.quantity, i.unit_price, i.discount_percent) for i in data.items),
                data.tax_amount,
                data.discount_amount,
            )
            invoice = Invoice(
                invoice_number=await self._unique_invoice_number(db, clinic_id),
                clinic_id=clinic_id,
                patient_id=data.patient_id,
                owner_id=data.owner_id,
                issue_date=utcnow().date(),
                due_date=data.due_date,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                status=InvoiceStatus.DRAFT,
                notes=data.notes,
                payment_method=data.payment_method,
                items=_build_items(data.items),
            )
            db.add(invoice)
            await db.flush()
            await db.refresh(invoice)
            logger.info(
                "Invoice created: %s (%s) total=%s", invoice.id, invoice.invoice_number, invoice.total_amount
            )
        except Exception as e:
            wrap_unexpected(e, "create invoice", clinic_id=clinic_id)

        notification_service.defer(db, clinic_id, "invoice-created", {
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "patient_name": patient.name,
            "owner_name": patient.owner.name if patient.owner else None,
            "total_amount": invoice.total_amount,
        })
        return invoice

    async def list_invoices(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        patient_id: Optional[uuid.UUID] = None,
        owner_id: Optional[uuid.UUID] = None,
        status: Optional[InvoiceStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
    ) -> Page:
        try:
            query = select(Invoice).where(Invoice.clinic_id == clinic_id)
            if patient_id is not None:
                query = query.where(Invoice.patient_id == patient_id)
            if owner_id is not None:
                query = query.where(Invoice.owner_id == owner_id)
            if status is not None:
                query = query.where(Invoice.status == status)
            if date_from is not None:
                query = query.where(Invoice.issue_date >= date_from)
            if date_to is not None:
                query = query.where(Invoice.issue_date <= date_to)
            if search and search.strip():
                owner = aliased(User)
                query = (
                    query.join(Patient, Patient.id == Invoice.patient_id)
                    .join(owner, owner.id == Invoice.owner_id)
                    .where(search_filter(search, Invoice.invoice_number, Patient.name, owner.name))
                )
            query = query.order_by(Invoice.issue_date.desc(), Invoice.created_at.desc())
            return await paginate(db, query, page, limit)
        except Exception as e:
            wrap_unexpected(e, "list invoices", clinic_id=clinic_id)

    async def get_invoice(self, db: AsyncSession, clinic_id: uuid.UUID, invoice_id: uuid.UUID) -> Invoice:
        try:
            return await self._get_scoped(db, clinic_id, invoice_id)
        except Exception as e:
            wrap_unexpected(e, "retrieve invoice", invoice_id=invoice_id)

    async def update_invoice(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: InvoiceUpdate,
    ) -> Invoice:
        """Replaces items when given and always recomputes the stored totals."""
        try:
            invoice = await self._get_scoped(db, clinic_id, invoice_id)
            if invoice.status == InvoiceStatus.PAID:
                raise BusinessRuleError("Cannot modify a paid invoice")

            changes = changed_fields(data, CLEARABLE_FIELDS, exclude={"items"})
            for field, value in changes.items():
                setattr(invoice, field, value)
            if data.items is not None:
                await self._ensure_products(db, clinic_id, data.items)
                invoice.items = _build_items(data.items)

            totals = compute_totals(
                ((i.quantity, i.unit_price, i.discount_percent) for i in invoice.items),
                invoice.tax_amount,
                invoice.discount_amount,
            )
            invoice.subtotal = totals.subtotal
            invoice.tax_amount = totals.tax_amount
            invoice.discount_amount = totals.discount_amount
            invoice.total_amount = totals.total_amount
            await db.flush()
            logger.info("Invoice %s updated: total=%s", invoice_id, invoice.total_amount)
        except Exception as e:
            wrap_unexpected(e, "update invoice", invoice_id=invoice_id)

        self._emit_updated(db, clinic_id, invoice)
        return invoice

    async def update_status(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        invoice_id: uuid.UUID,
        status: InvoiceStatus,
    ) -> Invoice:
        try:
            invoice = await self._get_scoped(db, clinic_id, invoice_id)
            if invoice.status == InvoiceStatus.PAID and status != InvoiceStatus.PAID:
                raise BusinessRuleError("Cannot change the status of a paid invoice")
            previous = invoice.status
            invoice.status = status
            await db.flush()
            logger.info("Invoice %s status %s → %s", invoice_id, previous.value, status.value)
        except Exception as e:
            wrap_unexpected(e, "update invoice status", invoice_id=invoice_id)

        self._emit_updated(db, clinic_id, invoice)
        return invoice

    async def delete_invoice(self, db: AsyncSession, clinic_id: uuid.UUID, invoice_id: uuid.UUID) -> bool:
        """Returns True for a hard delete, False when the invoice was cancelled."""
        try:
            invoice = await self._get_scoped(db, clinic_id, invoice_id)
            if invoice.payments:
                invoice.status = InvoiceStatus.CANCELLED
                await db.flush()
                logger.info("Invoice %s has payments; cancelled instead of deleted", invoice_id)
                return False
            await db.delete(invoice)
            await db.flush()
            logger.info("Invoice %s deleted", invoice_id)
            return True
        except Exception as e:
            wrap_unexpected(e, "delete invoice", invoice_id=invoice_id)

    # ── Payments ──────────────────────────────────────────────────────────

    async def add_payment(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: PaymentCreate,
    ) -> Dict[str, Any]:
        """
        Records a successful payment and moves the invoice to PARTIAL or PAID.

        Returns:
            {"payment": Payment, "invoice": Invoice}

        Raises:
            BusinessRuleError: invoice cancelled, or amount above the balance
        """
        try:
            invoice = await self._get_scoped(db, clinic_id, invoice_id)
            if invoice.status == InvoiceStatus.CANCELLED:
                raise BusinessRuleError("Cannot add payment to a cancelled invoice")

            amount = to_money(data.amount)
            remaining = remaining_balance(invoice.total_amount, _paid_amount(invoice))
            if amount > remaining:
                raise BusinessRuleError(
                    "Payment amount exceeds remaining balance",
                    context={"remaining_balance": str(remaining)},
                )

            payment = Payment(
                invoice_id=invoice.id,
                amount=amount,
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
                status=PaymentStatus.SUCCESS,
                payment_date=utcnow(),
                notes=data.notes,
            )
            invoice.payments.append(payment)

            paid = _paid_amount(invoice)
            invoice.status = resolve_payment_status(invoice.status, invoice.total_amount, paid)
            invoice.payment_method = data.payment_method
            await db.flush()
            remaining = remaining_balance(invoice.total_amount, paid)
            logger.info(
                "Payment %s of %s on invoice %s; remaining=%s status=%s",
                payment.id, amount, invoice.invoice_number, remaining, invoice.status.value,
            )
        except Exception as e:
            wrap_unexpected(e, "add payment", invoice_id=invoice_id)

        notification_service.defer(db, clinic_id, "payment-received", {
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "payment_amount": amount,
            "remaining_balance": remaining,
            "status": invoice.status,
        })
        return {"payment": payment, "invoice": invoice}

    # ── Statistics ────────────────────────────────────────────────────────

    async def get_stats(self, db: AsyncSession, clinic_id: uuid.UUID) -> Dict[str, Any]:
        try:
            today = utcnow().date()
            month_start = today.replace(day=1)

            rows = await db.execute(
                select(Invoice.status, func.count(Invoice.id))
                .where(Invoice.clinic_id == clinic_id)
                .group_by(Invoice.status)
            )
            by_status = {getattr(s, "value", s): count for s, count in rows.all()}

            total_revenue = (await db.execute(
                select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
                    Invoice.clinic_id == clinic_id, Invoice.status == InvoiceStatus.PAID
                )
            )).scalar()
            overdue = (await db.execute(
                select(func.count(Invoice.id)).where(
                    Invoice.clinic_id == clinic_id,
                    Invoice.status.in_((InvoiceStatus.SENT, InvoiceStatus.PARTIAL)),
                    Invoice.due_date < today,
                )
            )).scalar() or 0
            average = (await db.execute(
                select(func.avg(Invoice.total_amount)).where(
                    Invoice.clinic_id == clinic_id, Invoice.status != InvoiceStatus.CANCELLED
                )
            )).scalar()
            monthly_revenue = (await db.execute(
                select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
                    Invoice.clinic_id == clinic_id,
                    Invoice.status == InvoiceStatus.PAID,
                    Invoice.issue_date >= month_start,
                )
            )).scalar()

            return {
                "total_invoices": sum(by_status.values()),
                "total_revenue": to_money(total_revenue),
                "paid_invoices": by_status.get(InvoiceStatus.PAID.value, 0),
                "unpaid_invoices": by_status.get(InvoiceStatus.SENT.value, 0),
                "overdue_invoices": overdue,
                "average_invoice_value": to_money(average),
                "monthly_revenue": to_money(monthly_revenue),
            }
        except Exception as e:
            wrap_unexpected(e, "compute invoice statistics", clinic_id=clinic_id)

    def _emit_updated(self, db: AsyncSession, clinic_id: uuid.UUID, invoice: Invoice) -> None:
        notification_service.defer(db, clinic_id, "invoice-updated", {
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "status": invoice.status,
            "total_amount": invoice.total_amount,
        })


# ── Singleton Instance ────────────────────────────────────────────────────
invoice_service = InvoiceService()

"""
VetPintar Backend — Invoice Arithmetic
========================================

What:  Pure Decimal helpers for invoice totals, payment status and invoice
       numbers. Every amount is rounded half-up to cents.
Who:   InvoiceService.

Totals:
    item_total = quantity × unit_price × (1 − discount_percent / 100)
    subtotal   = Σ item_total
    total      = max(subtotal + tax − discount, 0)
    remaining  = total − paid

Payment status:
    paid ≥ total  → PAID
    paid > 0      → PARTIAL
    otherwise     → unchanged
"""

import random
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Tuple, Union

from vetpintar.models.enums import InvoiceStatus

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_money(value: Optional[Number]) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def item_total(quantity: Number, unit_price: Number, discount_percent: Number = 0) -> Decimal:
    gross = Decimal(str(quantity)) * Decimal(str(unit_price))
    factor = (HUNDRED - Decimal(str(discount_percent or 0))) / HUNDRED
    return to_money(gross * factor)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def compute_totals(
    items: Iterable[Tuple[Number, Number, Number]],
    tax_amount: Optional[Number] = None,
    discount_amount: Optional[Number] = None,
) -> InvoiceTotals:
    """`items` is an iterable of (quantity, unit_price, discount_percent)."""
    subtotal = to_money(sum((item_total(q, p, d) for q, p, d in items), ZERO))
    tax = to_money(tax_amount)
    discount = to_money(discount_amount)
    total = max(subtotal + tax - discount, ZERO)
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=to_money(total),
    )


def remaining_balance(total: Number, paid: Number) -> Decimal:
    return to_money(to_money(total) - to_money(paid))


def resolve_payment_status(current: InvoiceStatus, total: Number, paid: Number) -> InvoiceStatus:
    paid = to_money(paid)
    if paid >= to_money(total):
        return InvoiceStatus.PAID
    if paid > ZERO:
        return InvoiceStatus.PARTIAL
    return current


def generate_invoice_number(clinic_id: Union[uuid.UUID, str], now: datetime) -> str:
    """INV-<last 4 of clinic id>-<YYYYMM>-<4 random digits>, e.g. INV-9F2A-202501-0042"""
    suffix = str(clinic_id).replace("-", "")[-4:].upper()
    return f"INV-{suffix}-{now:%Y%m}-{random.randint(0, 9999):04d}"

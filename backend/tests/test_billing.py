"""
VetPintar Backend — Invoice Arithmetic Unit Tests
===================================================

What we test:
    ✅ Half-up rounding to cents
    ✅ Line discounts, tax and invoice-level discount
    ✅ Total never goes negative
    ✅ Payment status transitions
    ✅ Invoice number format
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from vetpintar.models.enums import InvoiceStatus
from vetpintar.services.billing import (
    compute_totals,
    generate_invoice_number,
    item_total,
    remaining_balance,
    resolve_payment_status,
    to_money,
)


class TestMoney:

    def test_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money("10.004") == Decimal("10.00")

    def test_none_is_zero(self):
        assert to_money(None) == Decimal("0.00")

    def test_float_goes_through_str(self):
        assert to_money(0.1) == Decimal("0.10")


class TestItemTotal:

    def test_without_discount(self):
        assert item_total(3, "15000") == Decimal("45000.00")

    def test_with_percent_discount(self):
        # 2 × 150000 − 10%
        assert item_total(2, "150000.00", 10) == Decimal("270000.00")

    def test_full_discount(self):
        assert item_total(1, "99.99", 100) == Decimal("0.00")


class TestComputeTotals:

    def test_totals_with_tax_and_discount(self):
        totals = compute_totals(
            [(1, "100000", 0), (2, "25000", 50)],
            tax_amount="11000",
            discount_amount="5000",
        )
        assert totals.subtotal == Decimal("125000.00")
        assert totals.tax_amount == Decimal("11000.00")
        assert totals.discount_amount == Decimal("5000.00")
        assert totals.total_amount == Decimal("131000.00")

    def test_total_is_floored_at_zero(self):
        totals = compute_totals([(1, "100", 0)], discount_amount="500")
        assert totals.total_amount == Decimal("0.00")

    def test_no_items(self):
        totals = compute_totals([])
        assert totals.subtotal == Decimal("0.00")
        assert totals.total_amount == Decimal("0.00")


class TestPaymentStatus:

    def test_remaining_balance(self):
        assert remaining_balance("100000", "40000.50") == Decimal("59999.50")

    def test_fully_paid(self):
        assert resolve_payment_status(InvoiceStatus.SENT, "100", "100") == InvoiceStatus.PAID

    def test_partially_paid(self):
        assert resolve_payment_status(InvoiceStatus.SENT, "100", "1") == InvoiceStatus.PARTIAL

    def test_unpaid_keeps_status(self):
        assert resolve_payment_status(InvoiceStatus.DRAFT, "100", "0") == InvoiceStatus.DRAFT


class TestInvoiceNumber:

    def test_format(self):
        clinic_id = UUID("12345678-1234-5678-1234-56789abc9f2a")
        number = generate_invoice_number(clinic_id, datetime(2025, 1, 15, tzinfo=timezone.utc))
        assert re.fullmatch(r"INV-9F2A-202501-\d{4}", number)

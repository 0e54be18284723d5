"""
VetPintar Backend — Invoice Service Unit Tests
================================================

What we test:
    ✅ Totals computed from items on create
    ✅ Partial and full payments drive the invoice status
    ✅ Overpayment and payments on cancelled invoices are rejected
    ✅ Paid invoices cannot be modified
    ✅ Invoices with payments are cancelled, not deleted
    ✅ Invoice number collisions are retried
    ✅ Line items may only link products of the invoicing clinic
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest

from vetpintar.exceptions import BusinessRuleError, ConflictError, NotFoundError
from vetpintar.models.enums import InvoiceStatus, PaymentMethod, PaymentStatus
from vetpintar.schemas.invoice import InvoiceCreate, InvoiceUpdate, PaymentCreate
from vetpintar.services.invoice_service import InvoiceService

SERVICE = "vetpintar.services.invoice_service"


def _invoice(total="100000.00", status=InvoiceStatus.SENT, payments=None):
    return SimpleNamespace(
        id=uuid4(),
        invoice_number="INV-ABCD-202501-0001",
        total_amount=Decimal(total),
        tax_amount=Decimal("0.00"),
        discount_amount=Decimal("0.00"),
        subtotal=Decimal(total),
        status=status,
        payments=list(payments or []),
        items=[],
        payment_method=None,
    )


def _paid(amount, status=PaymentStatus.SUCCESS):
    return SimpleNamespace(amount=Decimal(amount), status=status)


class TestCreateInvoice:

    def setup_method(self):
        self.service = InvoiceService()
        self.clinic_id = uuid4()
        self.patient = SimpleNamespace(
            id=uuid4(), owner_id=uuid4(), name="Milo", owner=SimpleNamespace(name="Andi")
        )

    def _data(self):
        return InvoiceCreate(
            patient_id=self.patient.id,
            owner_id=self.patient.owner_id,
            tax_amount=Decimal("1000"),
            discount_amount=Decimal("500"),
            items=[
                {"description": "Consultation", "quantity": 1, "unit_price": "50000"},
                {"description": "Vaccine", "quantity": 2, "unit_price": "10000", "discount_percent": 10},
            ],
        )

    @pytest.mark.asyncio
    async def test_create_computes_totals(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.patient),
            make_result(scalar=None),
        ]
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            invoice = await self.service.create_invoice(mock_db_session, self.clinic_id, self._data())

            assert invoice.status == InvoiceStatus.DRAFT
            assert invoice.subtotal == Decimal("68000.00")
            assert invoice.total_amount == Decimal("68500.00")
            assert [item.total_price for item in invoice.items] == [
                Decimal("50000.00"), Decimal("18000.00"),
            ]
            assert invoice.invoice_number.startswith("INV-")

            _, _, event, payload = mock_notify.defer.call_args.args
            assert event == "invoice-created"
            assert payload["owner_name"] == "Andi"

    @pytest.mark.asyncio
    async def test_patient_of_other_owner(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=None)]
        with pytest.raises(NotFoundError, match="Patient not found"):
            await self.service.create_invoice(mock_db_session, self.clinic_id, self._data())

    @pytest.mark.asyncio
    async def test_product_of_other_clinic_rejected(self, mock_db_session, make_result):
        own, foreign = uuid4(), uuid4()
        data = self._data()
        data.items[0].product_id = own
        data.items[1].product_id = foreign
        mock_db_session.execute.side_effect = [
            make_result(scalar=self.patient),
            make_result(scalars=[own]),
        ]

        with pytest.raises(NotFoundError, match="Product not found") as exc_info:
            await self.service.create_invoice(mock_db_session, self.clinic_id, data)
        assert exc_info.value.context["product_ids"] == [str(foreign)]
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_invoice_number_collisions_exhausted(self, mock_db_session, make_result):
        mock_db_session.execute.side_effect = [make_result(scalar=self.patient)] + [
            make_result(scalar=uuid4()) for _ in range(5)
        ]
        with pytest.raises(ConflictError, match="unique invoice number"):
            await self.service.create_invoice(mock_db_session, self.clinic_id, self._data())


class TestPayments:

    def setup_method(self):
        self.service = InvoiceService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_partial_payment(self, mock_db_session, make_result):
        invoice = _invoice("100000.00")
        mock_db_session.execute.return_value = make_result(scalar=invoice)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            result = await self.service.add_payment(
                mock_db_session, self.clinic_id, invoice.id,
                PaymentCreate(amount=Decimal("40000"), payment_method=PaymentMethod.CASH),
            )

            assert result["invoice"].status == InvoiceStatus.PARTIAL
            assert result["payment"].amount == Decimal("40000.00")
            assert result["payment"].status == PaymentStatus.SUCCESS
            assert invoice.payment_method == PaymentMethod.CASH
            payload = mock_notify.defer.call_args.args[3]
            assert payload["remaining_balance"] == Decimal("60000.00")

    @pytest.mark.asyncio
    async def test_final_payment_marks_paid(self, mock_db_session, make_result):
        invoice = _invoice("100000.00", InvoiceStatus.PARTIAL, [_paid("40000")])
        mock_db_session.execute.return_value = make_result(scalar=invoice)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            result = await self.service.add_payment(
                mock_db_session, self.clinic_id, invoice.id,
                PaymentCreate(amount=Decimal("60000"), payment_method=PaymentMethod.TRANSFER),
            )

            assert result["invoice"].status == InvoiceStatus.PAID
            assert len(invoice.payments) == 2

    @pytest.mark.asyncio
    async def test_failed_payments_do_not_count(self, mock_db_session, make_result):
        invoice = _invoice("100000.00", payments=[_paid("100000", PaymentStatus.FAILED)])
        mock_db_session.execute.return_value = make_result(scalar=invoice)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            result = await self.service.add_payment(
                mock_db_session, self.clinic_id, invoice.id,
                PaymentCreate(amount=Decimal("100000"), payment_method=PaymentMethod.CASH),
            )

            assert result["invoice"].status == InvoiceStatus.PAID

    @pytest.mark.asyncio
    async def test_overpayment_rejected(self, mock_db_session, make_result):
        invoice = _invoice("100000.00", payments=[_paid("90000")])
        mock_db_session.execute.return_value = make_result(scalar=invoice)

        with pytest.raises(BusinessRuleError, match="exceeds remaining balance") as exc_info:
            await self.service.add_payment(
                mock_db_session, self.clinic_id, invoice.id,
                PaymentCreate(amount=Decimal("10000.01"), payment_method=PaymentMethod.CASH),
            )

        assert exc_info.value.context["remaining_balance"] == "10000.00"
        assert len(invoice.payments) == 1

    @pytest.mark.asyncio
    async def test_cancelled_invoice_rejects_payment(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.CANCELLED)
        mock_db_session.execute.return_value = make_result(scalar=invoice)

        with pytest.raises(BusinessRuleError, match="cancelled invoice"):
            await self.service.add_payment(
                mock_db_session, self.clinic_id, invoice.id,
                PaymentCreate(amount=Decimal("1"), payment_method=PaymentMethod.CASH),
            )


class TestInvoiceLifecycle:

    def setup_method(self):
        self.service = InvoiceService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_paid_invoice_cannot_be_updated(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.PAID)
        mock_db_session.execute.return_value = make_result(scalar=invoice)

        with pytest.raises(BusinessRuleError, match="paid invoice"):
            await self.service.update_invoice(
                mock_db_session, self.clinic_id, invoice.id, InvoiceUpdate(notes="late fee")
            )

    @pytest.mark.asyncio
    async def test_update_replaces_items_and_recomputes(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.DRAFT)
        mock_db_session.execute.return_value = make_result(scalar=invoice)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            await self.service.update_invoice(
                mock_db_session, self.clinic_id, invoice.id,
                InvoiceUpdate(
                    tax_amount=Decimal("2500"),
                    items=[{"description": "Surgery", "quantity": 1, "unit_price": "250000"}],
                ),
            )

            assert invoice.subtotal == Decimal("250000.00")
            assert invoice.total_amount == Decimal("252500.00")
            assert mock_notify.defer.call_args.args[2] == "invoice-updated"

    @pytest.mark.asyncio
    async def test_update_with_foreign_product_keeps_items(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.DRAFT)
        mock_db_session.execute.side_effect = [make_result(scalar=invoice), make_result(scalars=[])]

        with pytest.raises(NotFoundError, match="Product not found"):
            await self.service.update_invoice(
                mock_db_session, self.clinic_id, invoice.id,
                InvoiceUpdate(items=[{
                    "product_id": str(uuid4()), "description": "Vaccine", "quantity": 1, "unit_price": "10000",
                }]),
            )
        assert invoice.items == []

    @pytest.mark.asyncio
    async def test_explicit_nulls_keep_amounts(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.DRAFT)
        invoice.tax_amount = Decimal("1000.00")
        invoice.notes = "Follow-up in a week"
        mock_db_session.execute.return_value = make_result(scalar=invoice)
        with patch(f"{SERVICE}.notification_service"):
            await self.service.update_invoice(
                mock_db_session, self.clinic_id, invoice.id,
                InvoiceUpdate.model_validate({"tax_amount": None, "discount_amount": None, "notes": None}),
            )

        assert invoice.tax_amount == Decimal("1000.00")
        assert invoice.discount_amount == Decimal("0.00")
        assert invoice.notes is None

    @pytest.mark.asyncio
    async def test_paid_status_is_final(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.PAID)
        mock_db_session.execute.return_value = make_result(scalar=invoice)

        with pytest.raises(BusinessRuleError):
            await self.service.update_status(
                mock_db_session, self.clinic_id, invoice.id, InvoiceStatus.SENT
            )

    @pytest.mark.asyncio
    async def test_delete_with_payments_cancels(self, mock_db_session, make_result):
        invoice = _invoice(payments=[_paid("1000")])
        mock_db_session.execute.return_value = make_result(scalar=invoice)

        deleted = await self.service.delete_invoice(mock_db_session, self.clinic_id, invoice.id)

        assert deleted is False
        assert invoice.status == InvoiceStatus.CANCELLED
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_without_payments(self, mock_db_session, make_result):
        invoice = _invoice(status=InvoiceStatus.DRAFT)
        mock_db_session.execute.return_value = make_result(scalar=invoice)

        deleted = await self.service.delete_invoice(mock_db_session, self.clinic_id, invoice.id)

        assert deleted is True
        mock_db_session.delete.assert_awaited_once_with(invoice)

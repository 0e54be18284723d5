"""
VetPintar Backend — Product Service Unit Tests
================================================

What we test:
    ✅ Stock operations (ADD / SUBTRACT / SET, floor at zero)
    ✅ SKU generation and uniqueness
    ✅ Low-stock alert emitted when stock reaches the threshold
    ✅ Explicit nulls never clear required fields
    ✅ Products on invoices are deactivated, not deleted
"""

import re
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import UUID, uuid4

import pytest

from vetpintar.exceptions import ConflictError, NotFoundError
from vetpintar.models.enums import ProductCategory, StockOperation
from vetpintar.models.product import Product
from vetpintar.schemas.product import ProductCreate, ProductUpdate, StockUpdate
from vetpintar.services.product_service import (
    ProductService,
    apply_stock_operation,
    generate_sku,
)

SERVICE = "vetpintar.services.product_service"


def _product(stock=50, threshold=10):
    return Product(
        id=uuid4(),
        name="Amoxicillin 250mg",
        category=ProductCategory.MEDICINE,
        price=Decimal("5000.00"),
        stock_quantity=stock,
        min_stock_alert=threshold,
        sku="MED-0001-0001",
        is_active=True,
    )


class TestStockOperations:

    def test_add(self):
        assert apply_stock_operation(5, StockOperation.ADD, 10) == 15

    def test_subtract_floors_at_zero(self):
        assert apply_stock_operation(5, StockOperation.SUBTRACT, 3) == 2
        assert apply_stock_operation(5, StockOperation.SUBTRACT, 30) == 0

    def test_set(self):
        assert apply_stock_operation(5, StockOperation.SET, 42) == 42

    def test_generate_sku(self):
        clinic_id = UUID("12345678-1234-5678-1234-56789abc9f2a")
        assert re.fullmatch(r"VAC-9F2A-\d{4}", generate_sku(ProductCategory.VACCINE, clinic_id))


class TestProductService:

    def setup_method(self):
        self.service = ProductService()
        self.clinic_id = uuid4()

    @pytest.mark.asyncio
    async def test_create_generates_sku(self, mock_db_session, make_result):
        mock_db_session.get.return_value = MagicMock()
        mock_db_session.execute.return_value = make_result(scalar=None)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            product = await self.service.create_product(
                mock_db_session,
                self.clinic_id,
                ProductCreate(name="Kitten Food", category=ProductCategory.FOOD, price="285000", stock_quantity=40),
            )

            assert product.sku.startswith("FOO-")
            assert product.clinic_id == self.clinic_id
            mock_notify.defer.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_low_stock_product_alerts(self, mock_db_session, make_result):
        mock_db_session.get.return_value = MagicMock()
        mock_db_session.execute.return_value = make_result(scalar=None)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            await self.service.create_product(
                mock_db_session,
                self.clinic_id,
                ProductCreate(
                    name="Rabies Vaccine", category=ProductCategory.VACCINE,
                    price="150000", stock_quantity=3, min_stock_alert=5,
                ),
            )

            assert mock_notify.defer.call_args.args[2] == "low-stock-alert"

    @pytest.mark.asyncio
    async def test_create_in_unknown_clinic(self, mock_db_session):
        mock_db_session.get.return_value = None
        with pytest.raises(NotFoundError, match="Clinic not found"):
            await self.service.create_product(
                mock_db_session,
                self.clinic_id,
                ProductCreate(name="Leash", category=ProductCategory.ACCESSORY, price="10"),
            )

    @pytest.mark.asyncio
    async def test_duplicate_sku(self, mock_db_session, make_result):
        mock_db_session.get.return_value = MagicMock()
        mock_db_session.execute.return_value = make_result(scalar=uuid4())
        with pytest.raises(ConflictError, match="SKU"):
            await self.service.create_product(
                mock_db_session,
                self.clinic_id,
                ProductCreate(name="Leash", category=ProductCategory.ACCESSORY, price="10", sku="ACC-1"),
            )

    @pytest.mark.asyncio
    async def test_stock_subtract_to_threshold_alerts(self, mock_db_session, make_result):
        product = _product(stock=15, threshold=10)
        mock_db_session.execute.return_value = make_result(scalar=product)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            updated = await self.service.update_stock(
                mock_db_session, self.clinic_id, product.id,
                StockUpdate(operation=StockOperation.SUBTRACT, quantity=5, reason="sold"),
            )

            assert updated.stock_quantity == 10
            payload = mock_notify.defer.call_args.args[3]
            assert payload["current_stock"] == 10
            assert payload["min_stock_alert"] == 10

    @pytest.mark.asyncio
    async def test_stock_above_threshold_is_quiet(self, mock_db_session, make_result):
        product = _product(stock=15, threshold=10)
        mock_db_session.execute.return_value = make_result(scalar=product)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            await self.service.update_stock(
                mock_db_session, self.clinic_id, product.id,
                StockUpdate(operation=StockOperation.ADD, quantity=5),
            )

            assert product.stock_quantity == 20
            mock_notify.defer.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_with_nulls_keeps_required_fields(self, mock_db_session, make_result):
        product = _product(stock=15, threshold=10)
        product.description = "Broad-spectrum antibiotic"
        mock_db_session.execute.return_value = make_result(scalar=product)
        with patch(f"{SERVICE}.notification_service") as mock_notify:
            updated = await self.service.update_product(
                mock_db_session, self.clinic_id, product.id,
                ProductUpdate.model_validate({
                    "name": None, "price": None, "stock_quantity": None,
                    "min_stock_alert": None, "description": None,
                }),
            )

            assert updated.name == "Amoxicillin 250mg"
            assert updated.price == Decimal("5000.00")
            assert updated.stock_quantity == 15
            assert updated.min_stock_alert == 10
            assert updated.description is None
            mock_notify.defer.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_invoiced_product_deactivates(self, mock_db_session, make_result):
        product = _product()
        mock_db_session.execute.side_effect = [make_result(scalar=product), make_result(scalar=True)]

        deleted = await self.service.delete_product(mock_db_session, self.clinic_id, product.id)

        assert deleted is False
        assert product.is_active is False

    @pytest.mark.asyncio
    async def test_delete_unused_product(self, mock_db_session, make_result):
        product = _product()
        mock_db_session.execute.side_effect = [make_result(scalar=product), make_result(scalar=False)]

        assert await self.service.delete_product(mock_db_session, self.clinic_id, product.id) is True
        mock_db_session.delete.assert_awaited_once_with(product)

    def test_categories(self):
        assert self.service.categories() == [
            "MEDICINE", "FOOD", "ACCESSORY", "SERVICE", "VACCINE", "CONSUMABLE",
        ]

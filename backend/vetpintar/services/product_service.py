"""
VetPintar Backend — Product Service
=====================================

What:  Clinic inventory: products, stock movements, low-stock and expiry
       views.
Who:   routes/products.py.

SKU format (generated when the client omits it):
    <first 3 letters of category>-<last 4 of clinic id>-<4 random digits>
    e.g. MED-9F2A-0412

Stock never drops below zero. Any write that leaves
stock_quantity <= min_stock_alert emits `low-stock-alert` to the clinic.
"""

import logging
import random
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.exceptions import ConflictError, NotFoundError
from vetpintar.models.clinic import Clinic
from vetpintar.models.enums import ProductCategory, StockOperation
from vetpintar.models.invoice import InvoiceItem
from vetpintar.models.mixins import utcnow
from vetpintar.models.product import Product
from vetpintar.schemas.product import ProductCreate, ProductUpdate, StockUpdate
from vetpintar.services.base_service import (
    Page,
    changed_fields,
    paginate,
    search_filter,
    wrap_unexpected,
)
from vetpintar.services.billing import to_money
from vetpintar.services.notification_service import notification_service

logger = logging.getLogger(__name__)

EXPIRY_WINDOW_DAYS = 30

# Nullable columns an update may clear with an explicit null
CLEARABLE_FIELDS = {"description", "unit", "expiry_date", "sku", "barcode", "photo_url"}


def generate_sku(category: ProductCategory, clinic_id: uuid.UUID) -> str:
    suffix = str(clinic_id).replace("-", "")[-4:].upper()
    return f"{category.value[:3]}-{suffix}-{random.randint(0, 9999):04d}"


def apply_stock_operation(current: int, operation: StockOperation, quantity: int) -> int:
    if operation == StockOperation.ADD:
        return current + quantity
    if operation == StockOperation.SUBTRACT:
        return max(current - quantity, 0)
    return max(quantity, 0)


class ProductService:

    async def _get_scoped(self, db: AsyncSession, clinic_id: uuid.UUID, product_id: uuid.UUID) -> Product:
        result = await db.execute(
            select(Product).where(Product.id == product_id, Product.clinic_id == clinic_id)
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError(resource="product", message="Product not found")
        return product

    async def _ensure_unique_sku(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        sku: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Product.id).where(Product.clinic_id == clinic_id, Product.sku == sku)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
            raise ConflictError("Product with this SKU already exists")

    def _alert_if_low(self, db: AsyncSession, clinic_id: uuid.UUID, product: Product) -> None:
        if not product.is_low_stock:
            return
        logger.info(
            "Low stock: product %s at %d (threshold %d)",
            product.id, product.stock_quantity, product.min_stock_alert,
        )
        notification_service.defer(db, clinic_id, "low-stock-alert", {
            "product_id": product.id,
            "product_name": product.name,
            "current_stock": product.stock_quantity,
            "min_stock_alert": product.min_stock_alert,
        })

    # ── CRUD ──────────────────────────────────────────────────────────────

    async def create_product(self, db: AsyncSession, clinic_id: uuid.UUID, data: ProductCreate) -> Product:
        try:
            if await db.get(Clinic, clinic_id) is None:
                raise NotFoundError(resource="clinic", message="Clinic not found")

            sku = data.sku or generate_sku(data.category, clinic_id)
            await self._ensure_unique_sku(db, clinic_id, sku)

            product = Product(
                **data.model_dump(exclude={"sku"}),
                sku=sku,
                clinic_id=clinic_id,
                is_active=True,
            )
            db.add(product)
            await db.flush()
            await db.refresh(product)
            logger.info("Product created: %s (%s) for clinic %s", product.id, sku, clinic_id)
        except Exception as e:
            wrap_unexpected(e, "create product", clinic_id=clinic_id)

        self._alert_if_low(db, clinic_id, product)
        return product

    async def list_products(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        category: Optional[ProductCategory] = None,
        search: Optional[str] = None,
        low_stock: bool = False,
        expiring: bool = False,
        is_active: Optional[bool] = True,
    ) -> Page:
        try:
            query = select(Product).where(Product.clinic_id == clinic_id)
            if is_active is not None:
                query = query.where(Product.is_active == is_active)
            if category is not None:
                query = query.where(Product.category == category)
            if low_stock:
                query = query.where(Product.stock_quantity <= Product.min_stock_alert)
            if expiring:
                today = utcnow().date()
                query = query.where(
                    Product.expiry_date.is_not(None),
                    Product.expiry_date <= today + timedelta(days=EXPIRY_WINDOW_DAYS),
                )
            clause = search_filter(search, Product.name, Product.description, Product.sku, Product.barcode)
            if clause is not None:
                query = query.where(clause)
            return await paginate(db, query.order_by(Product.name), page, limit)
        except Exception as e:
            wrap_unexpected(e, "list products", clinic_id=clinic_id)

    async def get_product(self, db: AsyncSession, clinic_id: uuid.UUID, product_id: uuid.UUID) -> Product:
        try:
            return await self._get_scoped(db, clinic_id, product_id)
        except Exception as e:
            wrap_unexpected(e, "retrieve product", product_id=product_id)

    async def update_product(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        product_id: uuid.UUID,
        data: ProductUpdate,
    ) -> Product:
        try:
            product = await self._get_scoped(db, clinic_id, product_id)
            changes = changed_fields(data, CLEARABLE_FIELDS)
            if changes.get("sku") and changes["sku"] != product.sku:
                await self._ensure_unique_sku(db, clinic_id, changes["sku"], exclude_id=product_id)
            for field, value in changes.items():
                setattr(product, field, value)
            await db.flush()
            logger.info("Product %s updated: %s", product_id, sorted(changes))
        except Exception as e:
            wrap_unexpected(e, "update product", product_id=product_id)

        self._alert_if_low(db, clinic_id, product)
        return product

    async def update_stock(
        self,
        db: AsyncSession,
        clinic_id: uuid.UUID,
        product_id: uuid.UUID,
        data: StockUpdate,
    ) -> Product:
        try:
            product = await self._get_scoped(db, clinic_id, product_id)
            previous = product.stock_quantity
            product.stock_quantity = apply_stock_operation(previous, data.operation, data.quantity)
            await db.flush()
            logger.info(
                "Stock %s for product %s: %d → %d (%s)",
                data.operation.value, product_id, previous, product.stock_quantity,
                data.reason or "no reason given",
            )
        except Exception as e:
            wrap_unexpected(e, "update stock", product_id=product_id)

        self._alert_if_low(db, clinic_id, product)
        return product

    async def delete_product(self, db: AsyncSession, clinic_id: uuid.UUID, product_id: uuid.UUID) -> bool:
        """Returns True for a hard delete, False when only deactivated."""
        try:
            product = await self._get_scoped(db, clinic_id, product_id)
            invoiced = await db.execute(select(exists().where(InvoiceItem.product_id == product_id)))
            if invoiced.scalar():
                product.is_active = False
                await db.flush()
                logger.info("Product %s is on invoices; deactivated instead of deleted", product_id)
                return False
            await db.delete(product)
            await db.flush()
            logger.info("Product %s deleted", product_id)
            return True
        except Exception as e:
            wrap_unexpected(e, "delete product", product_id=product_id)

    # ── Views ─────────────────────────────────────────────────────────────

    async def get_low_stock(self, db: AsyncSession, clinic_id: uuid.UUID) -> List[Product]:
        try:
            result = await db.execute(
                select(Product)
                .where(
                    Product.clinic_id == clinic_id,
                    Product.is_active.is_(True),
                    Product.stock_quantity <= Product.min_stock_alert,
                )
                .order_by(Product.stock_quantity)
            )
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "list low stock products", clinic_id=clinic_id)

    async def get_expiring(
        self, db: AsyncSession, clinic_id: uuid.UUID, days: int = EXPIRY_WINDOW_DAYS
    ) -> List[Product]:
        try:
            result = await db.execute(
                select(Product)
                .where(
                    Product.clinic_id == clinic_id,
                    Product.is_active.is_(True),
                    Product.expiry_date.is_not(None),
                    Product.expiry_date <= utcnow().date() + timedelta(days=days),
                )
                .order_by(Product.expiry_date)
            )
            return list(result.scalars().all())
        except Exception as e:
            wrap_unexpected(e, "list expiring products", clinic_id=clinic_id)

    async def get_stats(self, db: AsyncSession, clinic_id: uuid.UUID) -> Dict[str, Any]:
        try:
            active = Product.is_active.is_(True)
            total = (await db.execute(
                select(func.count(Product.id)).where(Product.clinic_id == clinic_id)
            )).scalar() or 0
            active_count = (await db.execute(
                select(func.count(Product.id)).where(Product.clinic_id == clinic_id, active)
            )).scalar() or 0
            low_stock = (await db.execute(
                select(func.count(Product.id)).where(
                    Product.clinic_id == clinic_id,
                    active,
                    Product.stock_quantity <= Product.min_stock_alert,
                )
            )).scalar() or 0
            expiring = (await db.execute(
                select(func.count(Product.id)).where(
                    Product.clinic_id == clinic_id,
                    active,
                    Product.expiry_date.is_not(None),
                    Product.expiry_date <= utcnow().date() + timedelta(days=EXPIRY_WINDOW_DAYS),
                )
            )).scalar() or 0
            total_value = (await db.execute(
                select(func.coalesce(func.sum(Product.price * Product.stock_quantity), 0)).where(
                    Product.clinic_id == clinic_id, active
                )
            )).scalar()
            categories = await db.execute(
                select(Product.category, func.count(Product.id))
                .where(Product.clinic_id == clinic_id, active)
                .group_by(Product.category)
            )

            return {
                "total_products": total,
                "active_products": active_count,
                "low_stock_products": low_stock,
                "expiring_products": expiring,
                "total_value": to_money(total_value),
                "category_distribution": {
                    getattr(c, "value", c): count for c, count in categories.all()
                },
            }
        except Exception as e:
            wrap_unexpected(e, "compute product statistics", clinic_id=clinic_id)

    def categories(self) -> List[str]:
        return [c.value for c in ProductCategory]


# ── Singleton Instance ────────────────────────────────────────────────────
product_service = ProductService()

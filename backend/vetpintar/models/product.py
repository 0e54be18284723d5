"""
VetPintar Backend — Product Model
===================================

What:  ORM model for the `products` table (clinic inventory and billable
       services).

Stock:
    stock_quantity never goes below 0. When stock_quantity <= min_stock_alert
    the clinic room receives a `low-stock-alert` event.

    sku is unique per clinic; enforced in ProductService.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetpintar.database import Base
from vetpintar.models.enums import ProductCategory
from vetpintar.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, enum_column


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "products"

    clinic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clinics.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[ProductCategory] = mapped_column(
        enum_column(ProductCategory), nullable=False
    )
    unit: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, comment="pcs, ml, tablet, box, ..."
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    stock_quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    min_stock_alert: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10, server_default=text("10")
    )
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    __table_args__ = (
        Index("idx_products_clinic_active", "clinic_id", "is_active"),
        Index("idx_products_clinic_sku", "clinic_id", "sku"),
        Index("idx_products_expiry_date", "expiry_date"),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_alert

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"

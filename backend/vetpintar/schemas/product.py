"""
VetPintar Backend — Product Schemas
=====================================
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field

from vetpintar.models.enums import ProductCategory, StockOperation


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: ProductCategory
    unit: Optional[str] = Field(default=None, max_length=50)
    price: Decimal = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    min_stock_alert: int = Field(default=10, ge=0)
    expiry_date: Optional[date] = None
    sku: Optional[str] = Field(
        default=None, max_length=100, description="Generated when omitted"
    )
    barcode: Optional[str] = Field(default=None, max_length=100)
    photo_url: Optional[str] = Field(default=None, max_length=500)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[ProductCategory] = None
    unit: Optional[str] = Field(default=None, max_length=50)
    price: Optional[Decimal] = Field(default=None, ge=0)
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    min_stock_alert: Optional[int] = Field(default=None, ge=0)
    expiry_date: Optional[date] = None
    sku: Optional[str] = Field(default=None, max_length=100)
    barcode: Optional[str] = Field(default=None, max_length=100)
    photo_url: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


class StockUpdate(BaseModel):
    operation: StockOperation
    quantity: int = Field(ge=0)
    reason: Optional[str] = Field(default=None, max_length=500)


class ProductResponse(BaseModel):
    id: uuid.UUID
    clinic_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: ProductCategory
    unit: Optional[str] = None
    price: Decimal
    stock_quantity: int
    min_stock_alert: int
    expiry_date: Optional[date] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductStats(BaseModel):
    total_products: int
    active_products: int
    low_stock_products: int
    expiring_products: int = Field(description="Active, expiring within 30 days")
    total_value: Decimal = Field(description="Σ price × stock_quantity, active only")
    category_distribution: Dict[str, int]

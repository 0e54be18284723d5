"""
VetPintar Backend — Product Routes
====================================

What:  /api/products — inventory, stock movements, low-stock and expiry
       views.
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import ClinicContext, CurrentUser, clinic_reader, clinic_writer, get_current_user
from vetpintar.models.enums import ProductCategory
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.schemas.product import ProductCreate, ProductResponse, ProductStats, ProductUpdate, StockUpdate
from vetpintar.services.product_service import product_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])

_NOT_FOUND = {404: {"description": "Product not found", "model": ErrorResponse}}
_DUPLICATE_SKU = {409: {"description": "Duplicate SKU", "model": ErrorResponse}}


@router.get("", response_model=PaginatedResponse[ProductResponse], summary="List products")
async def list_products(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    category: Optional[ProductCategory] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Matches name, description, SKU or barcode"),
    low_stock: bool = Query(default=False),
    expiring: bool = Query(default=False, description="Expiring within 30 days"),
    is_active: Optional[bool] = Query(default=True),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    result = await product_service.list_products(
        db,
        ctx.clinic_id,
        page=page,
        limit=limit,
        category=category,
        search=search,
        low_stock=low_stock,
        expiring=expiring,
        is_active=is_active,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, ProductResponse)


@router.get("/categories", response_model=ApiResponse[List[str]], summary="Product categories")
async def get_categories(_: CurrentUser = Depends(get_current_user)):
    return ApiResponse(data=product_service.categories())


@router.get("/low-stock", response_model=ApiResponse[List[ProductResponse]], summary="Products at or below alert level")
async def get_low_stock(
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    products = await product_service.get_low_stock(db, ctx.clinic_id)
    return ApiResponse(data=[ProductResponse.model_validate(p) for p in products])


@router.get("/expiring", response_model=ApiResponse[List[ProductResponse]], summary="Products expiring soon")
async def get_expiring(
    days: int = Query(default=30, ge=1, le=365),
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    products = await product_service.get_expiring(db, ctx.clinic_id, days)
    return ApiResponse(data=[ProductResponse.model_validate(p) for p in products])


@router.get("/stats", response_model=ApiResponse[ProductStats], summary="Inventory statistics")
async def get_stats(
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=ProductStats(**await product_service.get_stats(db, ctx.clinic_id)))


@router.get("/{product_id}", response_model=ApiResponse[ProductResponse], responses=_NOT_FOUND)
async def get_product(
    product_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_reader),
    db: AsyncSession = Depends(get_db_session),
):
    product = await product_service.get_product(db, ctx.clinic_id, product_id)
    return ApiResponse(data=ProductResponse.model_validate(product))


@router.post(
    "",
    response_model=ApiResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    responses=_DUPLICATE_SKU,
    summary="Add a product",
)
async def create_product(
    body: ProductCreate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    product = await product_service.create_product(db, ctx.clinic_id, body)
    return ApiResponse(message="Product created successfully", data=ProductResponse.model_validate(product))


@router.put("/{product_id}", response_model=ApiResponse[ProductResponse], responses={**_NOT_FOUND, **_DUPLICATE_SKU})
async def update_product(
    product_id: uuid.UUID,
    body: ProductUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    product = await product_service.update_product(db, ctx.clinic_id, product_id, body)
    return ApiResponse(message="Product updated successfully", data=ProductResponse.model_validate(product))


@router.patch(
    "/{product_id}/stock",
    response_model=ApiResponse[ProductResponse],
    responses=_NOT_FOUND,
    summary="Add, subtract or set stock",
)
async def update_stock(
    product_id: uuid.UUID,
    body: StockUpdate,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    product = await product_service.update_stock(db, ctx.clinic_id, product_id, body)
    return ApiResponse(message="Stock updated successfully", data=ProductResponse.model_validate(product))


@router.delete("/{product_id}", response_model=MessageResponse, responses=_NOT_FOUND)
async def delete_product(
    product_id: uuid.UUID,
    ctx: ClinicContext = Depends(clinic_writer),
    db: AsyncSession = Depends(get_db_session),
):
    if await product_service.delete_product(db, ctx.clinic_id, product_id):
        return MessageResponse(message="Product deleted successfully")
    return MessageResponse(message="Product is referenced by invoices and was deactivated")

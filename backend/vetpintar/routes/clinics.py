"""
VetPintar Backend — Clinic Routes
===================================

What:  /api/clinics — clinic directory, clinic management and membership.

Access:
    public                        GET "", GET /{id}
    authenticated                 GET /my
    SUPER_ADMIN, ADMIN, OWNER     POST ""
    clinic OWNER or SUPER_ADMIN   PUT/DELETE /{id}, POST/DELETE /{id}/users
    any clinic member             GET /{id}/users, GET /{id}/stats
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import (
    CurrentUser,
    ensure_clinic_owner,
    get_current_user,
    require_roles,
    resolve_clinic_access,
)
from vetpintar.models.enums import SubscriptionStatus, UserRole
from vetpintar.schemas.clinic import (
    ClinicAccessResponse,
    ClinicCreate,
    ClinicResponse,
    ClinicStats,
    ClinicUpdate,
    ClinicUserAdd,
    MyClinicResponse,
)
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.schemas.user import ClinicUserResponse
from vetpintar.services.clinic_service import clinic_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clinics", tags=["Clinics"])

_NOT_FOUND = {404: {"description": "Clinic not found", "model": ErrorResponse}}
_FORBIDDEN = {403: {"description": "Not allowed for this clinic", "model": ErrorResponse}}


@router.get("", response_model=PaginatedResponse[ClinicResponse], summary="List clinics")
async def list_clinics(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    search: Optional[str] = Query(default=None, description="Matches name, city or email"),
    city: Optional[str] = Query(default=None),
    subscription_status: Optional[SubscriptionStatus] = Query(default=None),
    is_active: Optional[bool] = Query(default=True),
    db: AsyncSession = Depends(get_db_session),
):
    result = await clinic_service.list_clinics(
        db,
        page=page,
        limit=limit,
        search=search,
        city=city,
        subscription_status=subscription_status,
        is_active=is_active,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, ClinicResponse)


@router.get("/my", response_model=ApiResponse[List[MyClinicResponse]], summary="Clinics I belong to")
async def get_my_clinics(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    clinics = await clinic_service.get_my_clinics(db, user.id)
    return ApiResponse(data=[MyClinicResponse(**c) for c in clinics])


@router.post(
    "",
    response_model=ApiResponse[ClinicResponse],
    status_code=status.HTTP_201_CREATED,
    responses=_FORBIDDEN,
    summary="Create a clinic (creator becomes OWNER)",
)
async def create_clinic(
    body: ClinicCreate,
    user: CurrentUser = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.OWNER)),
    db: AsyncSession = Depends(get_db_session),
):
    clinic = await clinic_service.create_clinic(db, body, user.id)
    return ApiResponse(message="Clinic created successfully", data=ClinicResponse.model_validate(clinic))


@router.get("/{clinic_id}", response_model=ApiResponse[ClinicResponse], responses=_NOT_FOUND, summary="Get a clinic")
async def get_clinic(clinic_id: uuid.UUID, db: AsyncSession = Depends(get_db_session)):
    clinic = await clinic_service.get_clinic(db, clinic_id)
    return ApiResponse(data=ClinicResponse.model_validate(clinic))


@router.put(
    "/{clinic_id}",
    response_model=ApiResponse[ClinicResponse],
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Update a clinic",
)
async def update_clinic(
    clinic_id: uuid.UUID,
    body: ClinicUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await ensure_clinic_owner(db, user, clinic_id)
    clinic = await clinic_service.update_clinic(db, clinic_id, body)
    return ApiResponse(message="Clinic updated successfully", data=ClinicResponse.model_validate(clinic))


@router.delete(
    "/{clinic_id}",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Delete (or deactivate) a clinic",
)
async def delete_clinic(
    clinic_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await ensure_clinic_owner(db, user, clinic_id)
    if await clinic_service.delete_clinic(db, clinic_id):
        return MessageResponse(message="Clinic deleted successfully")
    return MessageResponse(message="Clinic has related records and was deactivated")


# ── Membership ────────────────────────────────────────────────────────────


@router.get(
    "/{clinic_id}/users",
    response_model=ApiResponse[List[ClinicUserResponse]],
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Members of a clinic",
)
async def get_clinic_users(
    clinic_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_clinic_access(db, user, clinic_id)
    members = await clinic_service.get_clinic_users(db, clinic_id)
    return ApiResponse(data=[ClinicUserResponse(**m) for m in members])


@router.post(
    "/{clinic_id}/users",
    response_model=ApiResponse[ClinicAccessResponse],
    status_code=status.HTTP_201_CREATED,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Add a member or change their role",
)
async def add_clinic_user(
    clinic_id: uuid.UUID,
    body: ClinicUserAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await ensure_clinic_owner(db, user, clinic_id)
    access = await clinic_service.add_user_to_clinic(db, clinic_id, body.user_id, body.access_role)
    return ApiResponse(
        message="User added to clinic successfully",
        data=ClinicAccessResponse.model_validate(access),
    )


@router.delete(
    "/{clinic_id}/users/{user_id}",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Remove a member",
)
async def remove_clinic_user(
    clinic_id: uuid.UUID,
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await ensure_clinic_owner(db, user, clinic_id)
    await clinic_service.remove_user_from_clinic(db, clinic_id, user_id)
    return MessageResponse(message="User removed from clinic successfully")


@router.get(
    "/{clinic_id}/stats",
    response_model=ApiResponse[ClinicStats],
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Clinic counters",
)
async def get_clinic_stats(
    clinic_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_clinic_access(db, user, clinic_id)
    return ApiResponse(data=ClinicStats(**await clinic_service.get_clinic_stats(db, clinic_id)))

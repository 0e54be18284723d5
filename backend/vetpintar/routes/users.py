"""
VetPintar Backend — User Routes
=================================

What:  /api/users — platform user administration and self-service profile.

Access:
    admin only (ADMIN, SUPER_ADMIN)   list, create, stats, search, delete,
                                      activate/deactivate, reset-password
    super admin only                  creating super admins, and managing
                                      their accounts
    self or admin                     GET/PUT /{id}
    self only                         PUT /{id}/password
    clinic access                     GET /clinic/{clinic_id}
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.config import settings
from vetpintar.database import get_db_session
from vetpintar.dependencies import CurrentUser, get_current_user, require_roles, resolve_clinic_access
from vetpintar.exceptions import PermissionDeniedError
from vetpintar.models.enums import ADMIN_ROLES, UserRole
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse, PaginatedResponse, paginated
from vetpintar.schemas.user import (
    ClinicUserResponse,
    PasswordReset,
    PasswordUpdate,
    UserCreate,
    UserDetailResponse,
    UserResponse,
    UserStats,
    UserUpdate,
)
from vetpintar.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

require_admin = require_roles(*ADMIN_ROLES)


def _ensure_self_or_admin(user: CurrentUser, user_id: uuid.UUID) -> None:
    if user.id != user_id and not user.is_admin:
        raise PermissionDeniedError("You can only access your own account")


async def _ensure_may_manage(db: AsyncSession, user: CurrentUser, user_id: uuid.UUID) -> None:
    """Only a super admin may act on another super admin's account."""
    if user.is_super_admin or user.id == user_id:
        return
    target = await user_service.get_user(db, user_id)
    if target.role == UserRole.SUPER_ADMIN:
        raise PermissionDeniedError("Only a super admin can manage super admin accounts")


@router.get(
    "",
    response_model=PaginatedResponse[UserResponse],
    responses={403: {"description": "Admin only", "model": ErrorResponse}},
    summary="List users",
)
async def list_users(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    role: Optional[UserRole] = Query(default=None),
    clinic_id: Optional[uuid.UUID] = Query(default=None, description="Only members of this clinic"),
    search: Optional[str] = Query(default=None, description="Matches name, email or phone"),
    is_active: Optional[bool] = Query(default=True),
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    result = await user_service.list_users(
        db, page=page, limit=limit, role=role, clinic_id=clinic_id, search=search, is_active=is_active
    )
    response.headers["X-Total-Count"] = str(result.total)
    return paginated(result, UserResponse)


@router.post(
    "",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Create a user",
)
async def create_user(
    body: UserCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    if body.role == UserRole.SUPER_ADMIN and not user.is_super_admin:
        raise PermissionDeniedError("Only a super admin can create super admin accounts")
    created = await user_service.create_user(db, body)
    return ApiResponse(message="User created successfully", data=UserResponse.model_validate(created))


@router.get("/stats", response_model=ApiResponse[UserStats], summary="User counts by status and role")
async def get_user_stats(
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return ApiResponse(data=UserStats(**await user_service.get_user_stats(db)))


@router.get("/search", response_model=ApiResponse[List[UserResponse]], summary="Search active users")
async def search_users(
    q: str = Query(min_length=1, description="Matches name, email or phone"),
    limit: int = Query(default=10, ge=1, le=50),
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    users = await user_service.search_users(db, q, limit)
    return ApiResponse(data=[UserResponse.model_validate(u) for u in users])


@router.get(
    "/clinic/{clinic_id}",
    response_model=ApiResponse[List[ClinicUserResponse]],
    responses={403: {"description": "No access to this clinic", "model": ErrorResponse}},
    summary="Members of a clinic",
)
async def get_clinic_users(
    clinic_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_clinic_access(db, user, clinic_id)
    members = await user_service.get_clinic_users(db, clinic_id)
    return ApiResponse(data=[ClinicUserResponse(**m) for m in members])


@router.get(
    "/{user_id}",
    response_model=ApiResponse[UserDetailResponse],
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user",
)
async def get_user(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    _ensure_self_or_admin(user, user_id)
    found = await user_service.get_user(db, user_id)
    return ApiResponse(data=UserDetailResponse.model_validate(found))


@router.put(
    "/{user_id}",
    response_model=ApiResponse[UserResponse],
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Update a user",
)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    _ensure_self_or_admin(user, user_id)
    if not user.is_admin and (body.role is not None or body.is_active is not None):
        raise PermissionDeniedError("Only administrators can change role or status")
    if body.role == UserRole.SUPER_ADMIN and not user.is_super_admin:
        raise PermissionDeniedError("Only a super admin can grant the super admin role")
    await _ensure_may_manage(db, user, user_id)
    updated = await user_service.update_user(db, user_id, body)
    return ApiResponse(message="User updated successfully", data=UserResponse.model_validate(updated))


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Delete (or deactivate) a user",
)
async def delete_user(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    await _ensure_may_manage(db, user, user_id)
    deleted = await user_service.delete_user(db, user_id)
    if deleted:
        return MessageResponse(message="User deleted successfully")
    return MessageResponse(message="User has related records and was deactivated")


@router.patch("/{user_id}/activate", response_model=ApiResponse[UserResponse], summary="Activate a user")
async def activate_user(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    await _ensure_may_manage(db, user, user_id)
    updated = await user_service.activate_user(db, user_id)
    return ApiResponse(message="User activated successfully", data=UserResponse.model_validate(updated))


@router.patch(
    "/{user_id}/deactivate",
    response_model=ApiResponse[UserResponse],
    responses={400: {"description": "Last super admin", "model": ErrorResponse}},
    summary="Deactivate a user",
)
async def deactivate_user(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    await _ensure_may_manage(db, user, user_id)
    updated = await user_service.deactivate_user(db, user_id)
    return ApiResponse(message="User deactivated successfully", data=UserResponse.model_validate(updated))


@router.post("/{user_id}/reset-password", response_model=MessageResponse, summary="Set a new password (admin)")
async def reset_password(
    user_id: uuid.UUID,
    body: PasswordReset,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    await _ensure_may_manage(db, user, user_id)
    await user_service.reset_password(db, user_id, body.new_password)
    return MessageResponse(message="Password reset successfully")


@router.put(
    "/{user_id}/password",
    response_model=MessageResponse,
    responses={400: {"description": "Current password is incorrect", "model": ErrorResponse}},
    summary="Change own password",
)
async def update_password(
    user_id: uuid.UUID,
    body: PasswordUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    if user.id != user_id:
        raise PermissionDeniedError("You can only change your own password")
    await user_service.update_password(db, user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password updated successfully")

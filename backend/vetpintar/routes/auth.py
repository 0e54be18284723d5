"""
VetPintar Backend — Authentication Routes
===========================================

What:  /api/auth — login, registration, Google sign-in, token refresh,
       logout, profile and password change.
Who:   The web/mobile clients' sign-in screens.

login, register and google-login sit behind the stricter auth rate limit
(see middleware/rate_limit.py).
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.database import get_db_session
from vetpintar.dependencies import CurrentUser, get_current_user
from vetpintar.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
)
from vetpintar.schemas.common import ApiResponse, ErrorResponse, MessageResponse
from vetpintar.schemas.user import UserDetailResponse
from vetpintar.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

_AUTH_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Invalid credentials", "model": ErrorResponse},
    429: {"description": "Too many attempts", "model": ErrorResponse},
}


def _session_response(message: str, session: dict) -> ApiResponse[AuthResponse]:
    return ApiResponse(message=message, data=AuthResponse.model_validate(session, from_attributes=True))


@router.post(
    "/login",
    response_model=ApiResponse[AuthResponse],
    responses={**_AUTH_ERRORS, 403: {"description": "No access to clinic", "model": ErrorResponse}},
    summary="Log in with email and password",
)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db_session)):
    session = await auth_service.login(db, body.email, body.password, body.clinic_id)
    return _session_response("Login successful", session)


@router.post(
    "/register",
    response_model=ApiResponse[AuthResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        **_AUTH_ERRORS,
        404: {"description": "Clinic not found", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db_session)):
    session = await auth_service.register(db, body)
    return _session_response("Registration successful", session)


@router.post(
    "/google-login",
    response_model=ApiResponse[AuthResponse],
    responses={**_AUTH_ERRORS, 500: {"description": "Google login not configured", "model": ErrorResponse}},
    summary="Sign in with a Google ID token",
)
async def google_login(body: GoogleLoginRequest, db: AsyncSession = Depends(get_db_session)):
    session = await auth_service.google_login(db, body.id_token, body.clinic_id)
    return _session_response("Login successful", session)


@router.post(
    "/refresh",
    response_model=ApiResponse[AuthResponse],
    responses={401: {"description": "Invalid refresh token", "model": ErrorResponse}},
    summary="Exchange a refresh token for a new token pair",
)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db_session)):
    session = await auth_service.refresh(db, body.refresh_token)
    return _session_response("Token refreshed", session)


@router.post("/logout", response_model=MessageResponse, summary="Log out")
async def logout(user: CurrentUser = Depends(get_current_user)):
    await auth_service.logout(user.id)
    return MessageResponse(message="Logout successful")


@router.get(
    "/me",
    response_model=ApiResponse[UserDetailResponse],
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Current user with clinic memberships",
)
async def me(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    profile = await auth_service.me(db, user.id)
    return ApiResponse(data=UserDetailResponse.model_validate(profile))


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={401: {"description": "Current password is incorrect", "model": ErrorResponse}},
    summary="Change own password",
)
async def change_password(
    body: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await auth_service.change_password(db, user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")

"""
VetPintar Backend — Authentication Service
============================================

What:  Login, registration, token refresh, Google sign-in, profile and
       password change.
How:   Users are looked up with their clinic memberships eagerly loaded;
       a successful login issues an access token (carrying the current
       clinic) and a refresh token.
Who:   routes/auth.py.

Current clinic selection (login, register, refresh, google-login):
    requested clinic_id (must be granted, unless SUPER_ADMIN)
    → else the earliest granted clinic
    → else none (clinic_id claim is null)
"""

import logging
import secrets
import uuid
from typing import Any, Dict, Optional

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.concurrency import run_in_threadpool

from vetpintar.config import settings
from vetpintar.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceConfigurationError,
)
from vetpintar.models.clinic import Clinic, ClinicAccess
from vetpintar.models.enums import AccessRole, UserRole
from vetpintar.models.user import User
from vetpintar.schemas.auth import RegisterRequest
from vetpintar.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from vetpintar.services.base_service import wrap_unexpected

logger = logging.getLogger(__name__)


class AuthService:
    """
    Every public method returns either a User or the login payload:

        {
            "access_token", "refresh_token", "token_type": "bearer",
            "user": User, "clinics": [ClinicAccess, ...], "current_clinic": Clinic | None
        }

    Routes serialize it through schemas.auth.AuthResponse, which has no
    password_hash field.
    """

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _get_user_with_accesses(
        self, db: AsyncSession, *, user_id: Optional[uuid.UUID] = None, email: Optional[str] = None
    ) -> Optional[User]:
        query = (
            select(User)
            .options(selectinload(User.clinic_accesses))
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            query = query.where(User.id == user_id)
        else:
            query = query.where(User.email == email.lower())
        result = await db.execute(query)
        return result.scalar_one_or_none()

    def _build_session(self, user: User, clinic_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
        accesses = list(user.clinic_accesses)
        current: Optional[ClinicAccess] = None

        if clinic_id is not None:
            current = next((a for a in accesses if a.clinic_id == clinic_id), None)
            if current is None and user.role != UserRole.SUPER_ADMIN:
                raise PermissionDeniedError("No access to this clinic")
        elif accesses:
            current = min(accesses, key=lambda a: a.granted_at)

        current_clinic_id = current.clinic_id if current is not None else clinic_id

        return {
            "access_token": create_access_token(user.id, user.email, user.role, current_clinic_id),
            "refresh_token": create_refresh_token(user.id, user.email),
            "token_type": "bearer",
            "user": user,
            "clinics": accesses,
            "current_clinic": current.clinic if current is not None else None,
        }

    # ── Login / Register ──────────────────────────────────────────────────

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        clinic_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        try:
            user = await self._get_user_with_accesses(db, email=email)
            if user is None:
                logger.warning("Failed login attempt for %s", email)
                raise AuthenticationError("Invalid email or password")
            if not user.is_active:
                raise AuthenticationError("Account is deactivated")
            if not verify_password(password, user.password_hash):
                logger.warning("Failed login attempt for %s", email)
                raise AuthenticationError("Invalid email or password")

            session = self._build_session(user, clinic_id)
            logger.info("User %s logged in (clinic=%s)", user.id, clinic_id or "default")
            return session
        except Exception as e:
            wrap_unexpected(e, "log in", email=email)

    async def register(self, db: AsyncSession, data: RegisterRequest) -> Dict[str, Any]:
        try:
            if data.role == UserRole.SUPER_ADMIN:
                raise PermissionDeniedError("Cannot self-register as super admin")

            email = data.email.lower()
            existing = await db.execute(select(User.id).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError("User with this email already exists")

            if data.clinic_id is not None:
                clinic = await db.get(Clinic, data.clinic_id)
                if clinic is None or not clinic.is_active:
                    raise NotFoundError(resource="clinic", resource_id=str(data.clinic_id))

            user = User(
                email=email,
                password_hash=hash_password(data.password),
                name=data.name,
                phone=data.phone,
                role=data.role,
                is_active=True,
            )
            db.add(user)
            await db.flush()

            if data.clinic_id is not None:
                db.add(ClinicAccess(
                    user_id=user.id,
                    clinic_id=data.clinic_id,
                    access_role=data.access_role or AccessRole.VIEWER,
                ))
                await db.flush()

            user = await self._get_user_with_accesses(db, user_id=user.id)
            logger.info("New user registered: %s (role=%s)", user.id, user.role.value)
            return self._build_session(user)
        except Exception as e:
            wrap_unexpected(e, "register user", email=data.email)

    # ── Tokens ────────────────────────────────────────────────────────────

    async def refresh(self, db: AsyncSession, refresh_token: str) -> Dict[str, Any]:
        payload = decode_refresh_token(refresh_token)
        try:
            user_id = uuid.UUID(payload["sub"])
        except ValueError:
            raise AuthenticationError("Invalid refresh token")

        try:
            user = await self._get_user_with_accesses(db, user_id=user_id)
            if user is None or not user.is_active:
                raise AuthenticationError("User not found or inactive")
            return self._build_session(user)
        except Exception as e:
            wrap_unexpected(e, "refresh token", user_id=user_id)

    async def logout(self, user_id: uuid.UUID) -> None:
        # Tokens are stateless; logout only leaves an audit trail.
        logger.info("User %s logged out", user_id)

    # ── Profile ───────────────────────────────────────────────────────────

    async def me(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            user = await self._get_user_with_accesses(db, user_id=user_id)
            if user is None:
                raise NotFoundError(resource="user", message="User not found")
            return user
        except Exception as e:
            wrap_unexpected(e, "load profile", user_id=user_id)

    async def change_password(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        try:
            user = await db.get(User, user_id)
            if user is None:
                raise NotFoundError(resource="user", message="User not found")
            if not verify_password(current_password, user.password_hash):
                raise AuthenticationError("Current password is incorrect")
            user.password_hash = hash_password(new_password)
            await db.flush()
            logger.info("Password changed for user %s", user_id)
        except Exception as e:
            wrap_unexpected(e, "change password", user_id=user_id)

    # ── Google Sign-In ────────────────────────────────────────────────────

    async def _verify_google_token(self, token: str) -> Dict[str, Any]:
        # google-auth is synchronous (it may fetch Google's certs over HTTP)
        try:
            return await run_in_threadpool(
                google_id_token.verify_oauth2_token,
                token,
                google_requests.Request(),
                settings.google_client_id,
            )
        except ValueError as e:
            logger.warning("Rejected Google ID token: %s", e)
            raise AuthenticationError("Invalid Google token")

    async def google_login(
        self,
        db: AsyncSession,
        token: str,
        clinic_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        if not settings.google_client_id:
            raise ServiceConfigurationError("Google login is not configured")

        claims = await self._verify_google_token(token)
        email = (claims.get("email") or "").lower()
        if not email or not claims.get("email_verified"):
            raise AuthenticationError("Google account email is not verified")

        try:
            user = await self._get_user_with_accesses(db, email=email)
            if user is None:
                user = User(
                    email=email,
                    # Unusable password; the account signs in through Google only
                    password_hash=hash_password(secrets.token_urlsafe(32)),
                    name=claims.get("name") or email.split("@")[0],
                    role=UserRole.CUSTOMER,
                    is_active=True,
                )
                db.add(user)
                await db.flush()
                user = await self._get_user_with_accesses(db, user_id=user.id)
                logger.info("Created user %s from Google sign-in", user.id)
            elif not user.is_active:
                raise AuthenticationError("Account is deactivated")

            session = self._build_session(user, clinic_id)
            logger.info("User %s logged in with Google", user.id)
            return session
        except Exception as e:
            wrap_unexpected(e, "sign in with Google", email=email)


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()

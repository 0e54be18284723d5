"""
VetPintar Backend — Request Dependencies (Auth, Roles, Clinic Scope)
======================================================================

What:  FastAPI dependencies that identify the caller and resolve which
       clinic a request operates on.
How:   get_current_user → require_roles(...) / clinic_reader / clinic_writer
Who:   Every protected router; the WebSocket endpoint reuses
       authenticate_token and resolve_clinic_access directly.

Clinic resolution:
    1. explicit `clinic_id` query parameter, else
    2. the `clinic_id` claim of the access token, else
    3. 400 "Clinic ID is required"

    SUPER_ADMIN bypasses the ClinicAccess lookup. Everyone else needs a
    ClinicAccess row (403 otherwise); writes additionally reject VIEWER.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.database import get_db_session
from vetpintar.exceptions import AuthenticationError, PermissionDeniedError, ValidationError
from vetpintar.models.clinic import ClinicAccess
from vetpintar.models.enums import ADMIN_ROLES, AccessRole, UserRole
from vetpintar.models.user import User
from vetpintar.security import decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """The authenticated caller. `clinic_id` is the clinic from the token."""
    id: uuid.UUID
    email: str
    role: UserRole
    clinic_id: Optional[uuid.UUID] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass
class ClinicContext:
    """A caller bound to one clinic. access_role is None for SUPER_ADMIN."""
    user: CurrentUser
    clinic_id: uuid.UUID
    access_role: Optional[AccessRole] = None


def _parse_uuid(value) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# ── Authentication ────────────────────────────────────────────────────────


async def authenticate_token(db: AsyncSession, token: str) -> CurrentUser:
    """
    Verifies an access token and loads its user.

    Raises:
        AuthenticationError: bad token, unknown user, or deactivated user
    """
    payload = decode_access_token(token)
    user_id = _parse_uuid(payload.get("sub"))
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        clinic_id=_parse_uuid(payload.get("clinic_id")),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token is required")
    return await authenticate_token(db, credentials.credentials)


def require_roles(*roles: UserRole) -> Callable:
    """
    Dependency factory: only callers whose platform role is in `roles` pass.

    Example:
        @router.get("/stats", dependencies=[Depends(require_roles(*ADMIN_ROLES))])
    """
    allowed = set(roles)

    async def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            logger.warning(
                "Role check failed: user=%s role=%s required=%s",
                user.id, user.role.value, sorted(r.value for r in allowed),
            )
            raise PermissionDeniedError("Insufficient permissions")
        return user

    return checker


# ── Clinic Scope ──────────────────────────────────────────────────────────


async def resolve_clinic_access(
    db: AsyncSession,
    user: CurrentUser,
    clinic_id: Optional[uuid.UUID] = None,
    write: bool = False,
) -> ClinicContext:
    clinic_id = clinic_id or user.clinic_id
    if clinic_id is None:
        raise ValidationError("Clinic ID is required", field="clinic_id")

    if user.is_super_admin:
        return ClinicContext(user=user, clinic_id=clinic_id, access_role=None)

    result = await db.execute(
        select(ClinicAccess.access_role).where(
            ClinicAccess.user_id == user.id,
            ClinicAccess.clinic_id == clinic_id,
        )
    )
    access_role = result.scalar_one_or_none()
    if access_role is None:
        raise PermissionDeniedError("No access to this clinic")
    if write and access_role == AccessRole.VIEWER:
        raise PermissionDeniedError("Read-only access to this clinic")

    return ClinicContext(user=user, clinic_id=clinic_id, access_role=access_role)


async def ensure_clinic_owner(db: AsyncSession, user: CurrentUser, clinic_id: uuid.UUID) -> None:
    """Clinic management (update, delete, membership) needs OWNER access."""
    ctx = await resolve_clinic_access(db, user, clinic_id, write=True)
    if ctx.access_role is not None and ctx.access_role != AccessRole.OWNER:
        raise PermissionDeniedError("Only clinic owners can manage this clinic")


_CLINIC_QUERY = Query(
    default=None,
    description="Clinic to operate on; defaults to the clinic in the access token",
)


async def clinic_reader(
    clinic_id: Optional[uuid.UUID] = _CLINIC_QUERY,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ClinicContext:
    return await resolve_clinic_access(db, user, clinic_id)


async def clinic_writer(
    clinic_id: Optional[uuid.UUID] = _CLINIC_QUERY,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ClinicContext:
    return await resolve_clinic_access(db, user, clinic_id, write=True)


async def optional_clinic(
    clinic_id: Optional[uuid.UUID] = _CLINIC_QUERY,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[ClinicContext]:
    """Like clinic_reader, but yields None instead of 400 when no clinic is known."""
    if clinic_id is None and user.clinic_id is None:
        return None
    return await resolve_clinic_access(db, user, clinic_id)

"""
VetPintar Backend — Password Hashing and JWT Tokens
=====================================================

What:  bcrypt password hashing (passlib) and signed access/refresh tokens
       (python-jose).
Who:   AuthService, UserService, the get_current_user dependency and the
       WebSocket endpoint.

Token claims:
    access   sub, email, role, clinic_id, type="access",  iat, exp, iss, aud
    refresh  sub, email,                  type="refresh", iat, exp, iss, aud

    Access tokens are signed with JWT_SECRET, refresh tokens with
    JWT_REFRESH_SECRET, so one kind can never be replayed as the other.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import JWTError, jwt
from passlib.context import CryptContext

from vetpintar.config import settings
from vetpintar.exceptions import AuthenticationError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ── Passwords ─────────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


# ── Token creation ────────────────────────────────────────────────────────


def _encode(claims: Dict[str, Any], expires_delta: timedelta, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    user_id: Union[uuid.UUID, str],
    email: str,
    role: str,
    clinic_id: Optional[Union[uuid.UUID, str]] = None,
) -> str:
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": getattr(role, "value", role),
        "clinic_id": str(clinic_id) if clinic_id else None,
        "type": ACCESS_TOKEN_TYPE,
    }
    return _encode(
        claims,
        timedelta(minutes=settings.jwt_access_token_expire_minutes),
        settings.jwt_secret,
    )


def create_refresh_token(user_id: Union[uuid.UUID, str], email: str) -> str:
    claims = {
        "sub": str(user_id),
        "email": email,
        "type": REFRESH_TOKEN_TYPE,
    }
    return _encode(
        claims,
        timedelta(days=settings.jwt_refresh_token_expire_days),
        settings.jwt_refresh_secret,
    )


# ── Token verification ────────────────────────────────────────────────────


def _decode(token: str, secret: str, expected_type: str) -> Dict[str, Any]:
    """
    Verifies signature, exp, iss and aud, then the `type` claim.

    Raises:
        JWTError: on any verification failure (callers translate it)
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )
    if payload.get("type") != expected_type or not payload.get("sub"):
        raise JWTError(f"Expected a {expected_type} token")
    return payload


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return _decode(token, settings.jwt_secret, ACCESS_TOKEN_TYPE)
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def decode_refresh_token(token: str) -> Dict[str, Any]:
    try:
        return _decode(token, settings.jwt_refresh_secret, REFRESH_TOKEN_TYPE)
    except JWTError:
        raise AuthenticationError("Invalid refresh token")

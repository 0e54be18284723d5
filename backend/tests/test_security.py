"""
VetPintar Backend — Password & Token Unit Tests
=================================================

What we test:
    ✅ bcrypt hashing round trip
    ✅ Access token claims (sub, email, role, clinic_id, type)
    ✅ Access and refresh tokens are not interchangeable
    ✅ Tampered and expired tokens are rejected with AuthenticationError
"""

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest

from vetpintar.config import settings
from vetpintar.exceptions import AuthenticationError
from vetpintar.models.enums import UserRole
from vetpintar.security import (
    _encode,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("Password123!")
        assert hashed != "Password123!"
        assert verify_password("Password123!", hashed)
        assert not verify_password("wrong-password", hashed)

    def test_empty_hash_never_verifies(self):
        # Google-only accounts have no password hash
        assert not verify_password("anything", "")


class TestTokens:

    def test_access_token_claims(self):
        user_id, clinic_id = uuid4(), uuid4()
        token = create_access_token(user_id, "vet@vetpintar.id", UserRole.VETERINARIAN, clinic_id)

        payload = decode_access_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["email"] == "vet@vetpintar.id"
        assert payload["role"] == "VETERINARIAN"
        assert payload["clinic_id"] == str(clinic_id)
        assert payload["type"] == "access"

    def test_access_token_without_clinic(self):
        token = create_access_token(uuid4(), "a@b.id", "CUSTOMER")
        assert decode_access_token(token)["clinic_id"] is None

    def test_refresh_token_is_not_an_access_token(self):
        refresh = create_refresh_token(uuid4(), "a@b.id")
        with pytest.raises(AuthenticationError):
            decode_access_token(refresh)
        assert decode_refresh_token(refresh)["type"] == "refresh"

    def test_access_token_is_not_a_refresh_token(self):
        access = create_access_token(uuid4(), "a@b.id", "CUSTOMER")
        with pytest.raises(AuthenticationError):
            decode_refresh_token(access)

    def test_tampered_token_rejected(self):
        token = create_access_token(uuid4(), "a@b.id", "CUSTOMER")
        with pytest.raises(AuthenticationError):
            decode_access_token(token[:-2] + ("A" if token[-2] != "A" else "B") + token[-1])

    def test_expired_token_rejected(self):
        token = _encode(
            {"sub": str(uuid4()), "type": "access"},
            timedelta(seconds=-10),
            settings.jwt_secret,
        )
        with pytest.raises(AuthenticationError, match="Invalid or expired token"):
            decode_access_token(token)

    def test_wrong_audience_rejected(self):
        with patch.object(settings, "jwt_audience", "someone-else"):
            token = create_access_token(uuid4(), "a@b.id", "CUSTOMER")
        with pytest.raises(AuthenticationError):
            decode_access_token(token)

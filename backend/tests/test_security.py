"""Tests for password hashing, tokens and the session context."""

import jwt
import pytest
from datetime import timedelta

from momo_pos.core.exceptions import PermissionDeniedError
from momo_pos.core.rbac import SessionContext, UserRole
from momo_pos.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


class TestPasswords:

    def test_hash_round_trip(self):
        hashed = get_password_hash("momo-secret")
        assert hashed != "momo-secret"
        assert verify_password("momo-secret", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:

    def test_decode(self):
        token = create_access_token({"sub": "7", "username": "admin", "role": "ADMIN"})
        payload = decode_access_token(token)
        assert payload["sub"] == "7"
        assert payload["role"] == "ADMIN"
        assert "jti" in payload

    def test_expired(self):
        token = create_access_token({"sub": "7"}, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_foreign_signature(self):
        forged = jwt.encode({"sub": "7", "exp": 4102444800}, "some-other-key-that-is-long-enough", algorithm="HS256")
        assert decode_access_token(forged) is None


class TestSessionContext:

    def test_admin_chooses_branch(self):
        ctx = SessionContext(1, "admin", UserRole.ADMIN)
        assert ctx.scope_branch("Indiranagar") == "Indiranagar"
        assert ctx.scope_branch(None) is None
        ctx.require_admin("anything")

    def test_manager_is_pinned(self):
        ctx = SessionContext(2, "manager", UserRole.STORE_MANAGER, "Koramangala")
        assert ctx.scope_branch("Indiranagar") == "Koramangala"
        assert ctx.scope_branch(None) == "Koramangala"
        with pytest.raises(PermissionDeniedError):
            ctx.require_admin("Profit and loss")

    def test_manager_without_station(self):
        ctx = SessionContext(3, "lost", UserRole.STORE_MANAGER)
        with pytest.raises(PermissionDeniedError):
            ctx.scope_branch(None)

"""Tests for auth utility functions."""
import pytest
from datetime import timedelta
from jose import JWTError, jwt

from timetracker.config import settings
from timetracker.utils.auth import (
    create_access_token,
    hash_password,
    verify_access_token,
    verify_password,
)


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_is_salted_bcrypt(self):
        hashed = hash_password("mysecretpassword123")

        assert hashed.startswith("$2b$")
        assert hashed != hash_password("mysecretpassword123")

    def test_verify_password(self):
        hashed = hash_password("mysecretpassword123")

        assert verify_password("mysecretpassword123", hashed) is True
        assert verify_password("wrongpassword", hashed) is False
        assert verify_password("", hashed) is False


class TestJWTTokens:
    """Tests for JWT token functions."""

    def test_round_trip(self):
        token = create_access_token(user_id="user123")

        assert verify_access_token(token) == "user123"

    def test_payload_has_subject_and_expiry(self):
        token = create_access_token(user_id="user123", expires_delta=timedelta(hours=1))
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])

        assert payload["sub"] == "user123"
        assert "exp" in payload

    def test_invalid_token(self):
        with pytest.raises(JWTError):
            verify_access_token("invalid.token.here")

    def test_expired_token(self):
        token = create_access_token(user_id="user123", expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            verify_access_token(token)

    def test_missing_subject(self):
        token = jwt.encode({"role": "admin"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

        with pytest.raises(JWTError, match="sub"):
            verify_access_token(token)

"""
Unit tests for tdms/auth.py -- password hashing, bearer tokens, authentication.
"""
import os
import sys
import pytest
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from tdms.auth import (
    authenticate_user,
    decode_token,
    get_serializer,
    hash_password,
    issue_token,
    load_user,
    verify_password,
)

pytestmark = pytest.mark.unit


def _db_returning(row):
    """Patch tdms.auth.get_db so fetchone() returns the given row."""
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_cursor.fetchone.return_value = row
    mock_conn.cursor.return_value = mock_cursor
    p = patch("tdms.auth.get_db")
    m = p.start()
    m.return_value.__enter__ = MagicMock(return_value=mock_conn)
    m.return_value.__exit__ = MagicMock(return_value=False)
    return p, mock_cursor


def _user_row(password="secret123", is_approved=True, is_active=True, role="admin"):
    return {
        "user_id": 7,
        "email": "panglao.admin@tdms.test",
        "password": hash_password(password),
        "role": role,
        "region": "REGION VII",
        "province": "BOHOL",
        "municipality": "PANGLAO",
        "company_name": "Panglao Tourism Office",
        "is_approved": is_approved,
        "is_active": is_active,
    }


# ── hash_password / verify_password ──────────────────────────────────

class TestPasswordHashing:
    def test_hash_not_plaintext(self):
        assert hash_password("secret123") != "secret123"

    def test_verify_correct_password(self):
        assert verify_password("mypassword", hash_password("mypassword")) is True

    def test_verify_wrong_password(self):
        assert verify_password("wrong", hash_password("mypassword")) is False

    def test_same_password_different_salts(self):
        assert hash_password("same") != hash_password("same")

    def test_empty_inputs(self):
        assert verify_password("", hash_password("x")) is False
        assert verify_password("x", "") is False
        assert verify_password("x", None) is False

    def test_malformed_hash(self):
        assert verify_password("x", "not-a-bcrypt-hash") is False


# ── issue_token / decode_token ───────────────────────────────────────

class TestTokens:
    def test_payload_carries_id_and_role(self):
        token = issue_token({"user_id": 5, "role": "p_admin"})
        assert decode_token(token) == {"user_id": 5, "role": "p_admin"}

    def test_tampered_token(self):
        token = issue_token({"user_id": 5, "role": "p_admin"})
        assert decode_token(token[:-2] + "xx") is None

    def test_empty_token(self):
        assert decode_token("") is None
        assert decode_token(None) is None

    def test_token_from_other_secret_rejected(self):
        from itsdangerous import URLSafeTimedSerializer
        forged = URLSafeTimedSerializer("another-secret", salt="tdms-auth-token").dumps({"user_id": 1})
        assert decode_token(forged) is None

    def test_expired_token(self):
        token = issue_token({"user_id": 5, "role": "admin"})
        assert decode_token(token, max_age=-1) is None

    def test_serializer_uses_secret_key(self):
        from tdms.config import SECRET_KEY
        assert get_serializer().secret_key == SECRET_KEY.encode()


# ── load_user (mocked DB) ────────────────────────────────────────────

class TestLoadUser:
    def test_active_user(self):
        p, _ = _db_returning(_user_row())
        try:
            user = load_user(7)
        finally:
            p.stop()
        assert user["user_id"] == 7
        assert user["province"] == "BOHOL"
        assert "password" not in user
        assert "is_active" not in user

    def test_unknown_user(self):
        p, _ = _db_returning(None)
        try:
            assert load_user(99) is None
        finally:
            p.stop()

    def test_deactivated_user(self):
        p, _ = _db_returning(_user_row(is_active=False))
        try:
            assert load_user(7) is None
        finally:
            p.stop()


# ── authenticate_user (mocked DB) ────────────────────────────────────

class TestAuthenticateUser:
    def test_success(self):
        p, cursor = _db_returning(_user_row())
        try:
            user, error = authenticate_user(" Panglao.Admin@TDMS.test ", "secret123")
        finally:
            p.stop()
        assert error is None
        assert user["role"] == "admin"
        assert cursor.execute.call_args[0][1] == ("panglao.admin@tdms.test",)

    def test_wrong_password(self):
        p, _ = _db_returning(_user_row())
        try:
            user, error = authenticate_user("panglao.admin@tdms.test", "nope")
        finally:
            p.stop()
        assert user is None
        assert error == "Invalid credentials"

    def test_unknown_email(self):
        p, _ = _db_returning(None)
        try:
            user, error = authenticate_user("ghost@tdms.test", "secret123")
        finally:
            p.stop()
        assert user is None
        assert error == "Invalid credentials"

    def test_unapproved(self):
        p, _ = _db_returning(_user_row(is_approved=False))
        try:
            _, error = authenticate_user("panglao.admin@tdms.test", "secret123")
        finally:
            p.stop()
        assert error == "Waiting for admin approval"

    def test_deactivated(self):
        p, _ = _db_returning(_user_row(is_active=False))
        try:
            _, error = authenticate_user("panglao.admin@tdms.test", "secret123")
        finally:
            p.stop()
        assert error == "Account is deactivated"

    def test_missing_credentials_skip_db(self):
        with patch("tdms.auth.get_db") as mock_get_db:
            assert authenticate_user("", "x") == (None, "Invalid credentials")
            assert authenticate_user("a@b.c", None) == (None, "Invalid credentials")
            mock_get_db.assert_not_called()

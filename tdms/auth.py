"""
Authentication utilities: password hashing, bearer token signing, and user lookup.
"""
from typing import Optional, Tuple

import bcrypt
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from tdms.config import SECRET_KEY, TOKEN_MAX_AGE, TOKEN_SALT
from tdms.database import get_db

# Columns carried in the authenticated user context
USER_CONTEXT_FIELDS = (
    'user_id', 'email', 'role', 'region', 'province', 'municipality', 'company_name',
)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def get_serializer():
    """Get the URL-safe serializer used for bearer tokens."""
    return URLSafeTimedSerializer(SECRET_KEY, salt=TOKEN_SALT)


def issue_token(user: dict) -> str:
    """Sign a bearer token for the given user."""
    return get_serializer().dumps({'user_id': user['user_id'], 'role': user['role']})


def decode_token(token: str, max_age: int = TOKEN_MAX_AGE) -> Optional[dict]:
    """Return the token payload, or None if the signature is bad or expired."""
    if not token:
        return None
    try:
        return get_serializer().loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None


def _user_context(row) -> dict:
    return {field: row[field] for field in USER_CONTEXT_FIELDS}


def load_user(user_id: int) -> Optional[dict]:
    """
    Load the authenticated user context by id.
    Region/province/municipality always come from the database, never from the token,
    so scope checks are made against the stored assignment.
    Returns None for unknown or deactivated accounts.
    """
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """SELECT user_id, email, role, region, province, municipality, company_name, is_active
               FROM users WHERE user_id = ?""",
            (user_id,)
        )
        row = cursor.fetchone()

    if not row or not row['is_active']:
        return None
    return _user_context(row)


def authenticate_user(email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
    """
    Authenticate a user by email and password.
    Returns (user, None) on success or (None, reason) on failure.
    """
    if not email or not password:
        return None, "Invalid credentials"

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """SELECT user_id, email, password, role, region, province, municipality,
                      company_name, is_approved, is_active
               FROM users WHERE LOWER(email) = ?""",
            (email.strip().lower(),)
        )
        row = cursor.fetchone()

    if not row or not verify_password(password, row['password']):
        return None, "Invalid credentials"
    if not row['is_approved']:
        return None, "Waiting for admin approval"
    if not row['is_active']:
        return None, "Account is deactivated"

    return _user_context(row), None

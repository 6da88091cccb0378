"""
Common dependencies for route handlers.
"""
from datetime import date
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tdms.auth import decode_token, load_user
from tdms.config import MAX_REPORT_YEAR, MIN_REPORT_YEAR
from tdms import roles


def get_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request) -> Optional[dict]:
    """
    Get the current user from the Authorization header.
    Returns user dict or None if not authenticated.
    """
    payload = decode_token(get_bearer_token(request))
    if not payload or 'user_id' not in payload:
        return None
    return load_user(payload['user_id'])


def require_auth(request: Request) -> dict:
    """
    Dependency that requires authentication.
    Raises HTTPException 401 if not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_any_admin(user: dict = Depends(require_auth)) -> dict:
    if not roles.is_admin(user):
        raise HTTPException(status_code=403, detail="Access denied. Admin role required.")
    return user


def require_area_admin(user: dict = Depends(require_auth)) -> dict:
    """Municipal or provincial administrator."""
    if not (roles.is_municipal_admin(user) or roles.is_provincial_admin(user)):
        raise HTTPException(status_code=403, detail="Access denied. Admin role required.")
    return user


def require_provincial_admin(user: dict = Depends(require_auth)) -> dict:
    if not roles.is_provincial_admin(user):
        raise HTTPException(status_code=403, detail="Access denied. Provincial admin role required.")
    return user


def require_regional_admin(user: dict = Depends(require_auth)) -> dict:
    if not roles.is_regional_admin(user):
        raise HTTPException(status_code=403, detail="Access denied. Regional admin role required.")
    return user


# ── Query parameter parsing ──────────────────────────────────────────

def parse_year(value) -> int:
    """Year query parameter; missing or out-of-range values become the current year."""
    try:
        year = int(value)
    except (TypeError, ValueError):
        return date.today().year
    if year < MIN_REPORT_YEAR or year > MAX_REPORT_YEAR:
        return date.today().year
    return year


def parse_month(value, default_current: bool = False) -> Optional[int]:
    """
    Month query parameter (1-12).
    Invalid values become None, or the current month when default_current is set.
    """
    fallback = date.today().month if default_current else None
    try:
        month = int(value)
    except (TypeError, ValueError):
        return fallback
    return month if 1 <= month <= 12 else fallback


def requested_scope(request: Request) -> dict:
    """Scope the client asked for; resolve_scope decides what it gets."""
    params = request.query_params
    return {
        'region': params.get('region'),
        'province': params.get('province'),
        'municipality': params.get('municipality'),
    }


# ── Request / response helpers ───────────────────────────────────────

async def read_json(request: Request) -> dict:
    """JSON object body, or {} when the body is empty or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def json_response(content, status_code: int = 200) -> JSONResponse:
    """JSONResponse that also serializes datetimes and Decimals from PostgreSQL."""
    return JSONResponse(jsonable_encoder(content), status_code=status_code)

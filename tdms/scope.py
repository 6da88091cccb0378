"""
Server-side scope resolution.

Every metrics query is narrowed by a scope filter {region, province, municipality}.
The filter a dashboard sends is only a request: the effective scope is derived
from the authenticated user's stored address and tier, and client values are
honoured only where the tier is allowed to narrow further.
"""
from typing import Callable, Iterable, Optional

from tdms.config import (
    ALL_SCOPE, ROLE_MUNICIPAL_ADMIN, ROLE_PROVINCIAL_ADMIN, ROLE_REGIONAL_ADMIN,
)
from tdms.roles import ROLE_SCOPE_LEVELS, get_user_role, pinned_scope

SCOPE_LEVELS = ('region', 'province', 'municipality')


class ScopeError(Exception):
    """Raised when a requested scope lies outside what the user may see."""

    status_code = 403

    def __init__(self, message: str = "Municipality not permitted"):
        super().__init__(message)
        self.message = message


def normalize_scope_value(value) -> Optional[str]:
    """Map empty values and the ALL sentinel to None; strip everything else."""
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.upper() == ALL_SCOPE:
        return None
    return value


def make_scope(region=None, province=None, municipality=None) -> dict:
    return {
        'region': normalize_scope_value(region),
        'province': normalize_scope_value(province),
        'municipality': normalize_scope_value(municipality),
    }


def _same_area(a: str, b: str) -> bool:
    return (a or '').strip().upper() == (b or '').strip().upper()


def _permitted_municipality(requested: str, allowed: Iterable[str]) -> str:
    for name in allowed:
        if _same_area(name, requested):
            return name
    raise ScopeError()


def _default_municipality_lookup(region: str, province: str) -> list:
    from tdms.metrics import list_municipalities
    return list_municipalities(region, province)


def resolve_scope(
    user: dict,
    requested: dict = None,
    municipality_lookup: Callable[[str, str], list] = None,
) -> dict:
    """
    Compute the effective scope for a user.

    - user:    pinned to own region/province/municipality
    - admin:   own region/province; may pick another municipality of the same
               province, otherwise own municipality
    - p_admin: own region/province; optional municipality of the same province,
               otherwise province-wide
    - r_admin: own region; optional province, and a municipality only together
               with a province

    Raises ScopeError when a requested municipality is outside the province.
    """
    requested = make_scope(**(requested or {}))
    lookup = municipality_lookup or _default_municipality_lookup
    role = get_user_role(user)
    scope = pinned_scope(user)

    # An unset pinned level would silently widen the scope
    for level in ROLE_SCOPE_LEVELS.get(role, ()):
        if not normalize_scope_value(scope[level]):
            raise ScopeError("No assigned area for this account")

    if role in (ROLE_MUNICIPAL_ADMIN, ROLE_PROVINCIAL_ADMIN):
        if requested['municipality']:
            allowed = lookup(scope['region'], scope['province'])
            scope['municipality'] = _permitted_municipality(requested['municipality'], allowed)

    elif role == ROLE_REGIONAL_ADMIN:
        scope['province'] = requested['province']
        if requested['province']:
            scope['municipality'] = requested['municipality']

    return scope


def scope_where(scope: dict, alias: str = 'u') -> tuple:
    """
    Build the AND-joined SQL conditions for a scope against a users table alias.
    Returns (sql_fragment, params); the fragment is empty when nothing narrows.
    """
    conditions = []
    params = []
    for level in SCOPE_LEVELS:
        value = scope.get(level)
        if value is not None:
            conditions.append(f"UPPER(TRIM({alias}.{level})) = UPPER(TRIM(?))")
            params.append(value)
    return " AND ".join(conditions), params

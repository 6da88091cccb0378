"""
Role-based access control for TDMS.

Role Hierarchy:
1. r_admin - Regional administrator (all provinces in one region)
2. p_admin - Provincial administrator (all municipalities in one province)
3. admin   - Municipal administrator (one municipality)
4. user    - Registered establishment (submits monthly reports)
"""
from tdms.config import (
    ROLE_USER, ROLE_MUNICIPAL_ADMIN, ROLE_PROVINCIAL_ADMIN, ROLE_REGIONAL_ADMIN,
)

# All roles in hierarchy order (highest to lowest)
ALL_ROLES = [
    ROLE_REGIONAL_ADMIN,
    ROLE_PROVINCIAL_ADMIN,
    ROLE_MUNICIPAL_ADMIN,
    ROLE_USER,
]

ADMIN_ROLES = [ROLE_REGIONAL_ADMIN, ROLE_PROVINCIAL_ADMIN, ROLE_MUNICIPAL_ADMIN]

ROLE_NAMES = {
    ROLE_REGIONAL_ADMIN: 'Regional Administrator',
    ROLE_PROVINCIAL_ADMIN: 'Provincial Administrator',
    ROLE_MUNICIPAL_ADMIN: 'Municipal Administrator',
    ROLE_USER: 'Establishment',
}

# Scope levels each role is pinned to by its own stored address
ROLE_SCOPE_LEVELS = {
    ROLE_REGIONAL_ADMIN: ('region',),
    ROLE_PROVINCIAL_ADMIN: ('region', 'province'),
    ROLE_MUNICIPAL_ADMIN: ('region', 'province', 'municipality'),
    ROLE_USER: ('region', 'province', 'municipality'),
}


def get_user_role(user: dict) -> str:
    """Get the role of a user, defaulting to establishment."""
    if not user:
        return None
    role = user.get('role')
    return role if role in ALL_ROLES else ROLE_USER


def get_role_display_name(role: str) -> str:
    """Get display name for a role."""
    return ROLE_NAMES.get(role, role)


def is_regional_admin(user: dict) -> bool:
    return get_user_role(user) == ROLE_REGIONAL_ADMIN


def is_provincial_admin(user: dict) -> bool:
    return get_user_role(user) == ROLE_PROVINCIAL_ADMIN


def is_municipal_admin(user: dict) -> bool:
    return get_user_role(user) == ROLE_MUNICIPAL_ADMIN


def is_admin(user: dict) -> bool:
    """Check if user holds any administrator tier."""
    return get_user_role(user) in ADMIN_ROLES


def pinned_scope(user: dict) -> dict:
    """
    The part of the scope fixed by the user's own stored address.
    Levels the role is not pinned to are None.
    """
    scope = {'region': None, 'province': None, 'municipality': None}
    if not user:
        return scope
    for level in ROLE_SCOPE_LEVELS.get(get_user_role(user), ()):
        scope[level] = user.get(level)
    return scope

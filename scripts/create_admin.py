"""
Create an administrator account for TDMS.

Values come from the environment so one script seeds every tier:
    ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_ROLE (r_admin | p_admin | admin),
    ADMIN_REGION, ADMIN_PROVINCE, ADMIN_MUNICIPALITY, ADMIN_NAME
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tdms.accounts import create_user, email_exists
from tdms.auth import hash_password
from tdms.database import init_database
from tdms.roles import ADMIN_ROLES, ROLE_SCOPE_LEVELS, get_role_display_name


def create_admin_user():
    """Create an approved, active administrator pinned to an area."""
    init_database()

    admin_email = os.getenv("ADMIN_EMAIL", "regional.admin@tdms.local").strip().lower()
    admin_password = os.getenv("ADMIN_PASSWORD", "Admin@123")  # Change this in production
    admin_role = os.getenv("ADMIN_ROLE", "r_admin")
    admin_name = os.getenv("ADMIN_NAME", "Tourism Office")
    area = {
        'region': os.getenv("ADMIN_REGION", "REGION VII"),
        'province': os.getenv("ADMIN_PROVINCE", "BOHOL"),
        'municipality': os.getenv("ADMIN_MUNICIPALITY", "PANGLAO"),
    }

    if admin_role not in ADMIN_ROLES:
        print(f"Unknown admin role: {admin_role} (expected one of {', '.join(ADMIN_ROLES)})")
        sys.exit(1)

    if email_exists(admin_email):
        print(f"Admin user already exists: {admin_email}")
        return

    # Only the levels this tier is pinned to are stored
    levels = {level: area[level].strip().upper() for level in ROLE_SCOPE_LEVELS[admin_role]}

    user_id = create_user(
        admin_email,
        hash_password(admin_password),
        role=admin_role,
        company_name=admin_name,
        registered_owner=admin_name,
        is_approved=True,
        is_active=True,
        email_verified=True,
        **levels,
    )

    print("=" * 50)
    print(f"{get_role_display_name(admin_role)} created successfully!")
    print("=" * 50)
    print(f"  User ID: {user_id}")
    print(f"  Email: {admin_email}")
    print(f"  Password: {admin_password}")
    for level, value in levels.items():
        print(f"  {level.title()}: {value}")
    print("=" * 50)
    print("IMPORTANT: Change the password after first login!")
    print("=" * 50)


if __name__ == "__main__":
    create_admin_user()

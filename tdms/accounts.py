"""
Account administration: establishment approval lifecycle, administrator
lists, submission listing and the auto-approval switch.
"""
from typing import Optional

from tdms.config import (
    ACCOMMODATION_CODES, DEFAULT_ACCOMMODATION_CODE, DEFAULT_PAGE_SIZE,
    ROLE_USER, ROLE_MUNICIPAL_ADMIN, ROLE_PROVINCIAL_ADMIN,
)
from tdms.database import get_db, rows_to_dicts, row_to_dict, get_setting, set_setting
from tdms.scope import scope_where

AUTO_APPROVAL_KEY = 'auto_approval'

# Never returned to clients
PUBLIC_USER_COLUMNS = """
    u.user_id, u.email, u.role, u.is_approved, u.is_active, u.phone_number,
    u.registered_owner, u.tin, u.company_address, u.accommodation_type,
    u.number_of_rooms, u.company_name, u.accommodation_code, u.region,
    u.province, u.municipality, u.barangay, u.date_established, u.email_verified
"""


def get_accommodation_code(accommodation_type: str) -> str:
    return ACCOMMODATION_CODES.get(accommodation_type, DEFAULT_ACCOMMODATION_CODE)


def _scope_conditions(scope: dict, conditions: list, params: list) -> tuple:
    fragment, scope_params = scope_where(scope, 'u')
    conditions = list(conditions)
    if fragment:
        conditions.append(fragment)
    return " AND ".join(conditions), list(params) + scope_params


def get_profile(user_id: int) -> Optional[dict]:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """SELECT user_id, email, role, region, province, municipality, company_name
               FROM users WHERE user_id = ?""",
            (user_id,)
        )
        return row_to_dict(cursor.fetchone())


# ── Establishments ───────────────────────────────────────────────────

def list_establishments(scope: dict, pending_only: bool = False) -> list:
    conditions = [f"u.role = '{ROLE_USER}'"]
    if pending_only:
        conditions.append("u.is_approved = FALSE")
    where, params = _scope_conditions(scope, conditions, [])
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"SELECT {PUBLIC_USER_COLUMNS} FROM users u WHERE {where} ORDER BY u.company_name ASC",
            tuple(params)
        )
        return rows_to_dicts(cursor.fetchall())


def find_establishment(user_id: int, scope: dict) -> Optional[dict]:
    """An establishment by id, only if it lies inside the scope."""
    where, params = _scope_conditions(scope, ["u.user_id = ?", f"u.role = '{ROLE_USER}'"], [user_id])
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"SELECT {PUBLIC_USER_COLUMNS} FROM users u WHERE {where}", tuple(params))
        return row_to_dict(cursor.fetchone())


def approve_user(user_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("UPDATE users SET is_approved = TRUE WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0


def decline_user(user_id: int) -> bool:
    """Declining removes the registration; submissions and drafts cascade."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0


def deactivate_user(user_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("UPDATE users SET is_active = FALSE WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0


def update_accommodation(user_id: int, accommodation_type: str) -> bool:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "UPDATE users SET accommodation_type = ?, accommodation_code = ? WHERE user_id = ?",
            (accommodation_type, get_accommodation_code(accommodation_type), user_id)
        )
        return cursor.rowcount > 0


# ── Submissions ──────────────────────────────────────────────────────

def _escape_like(text: str) -> str:
    """Make % and _ in user input match literally."""
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def list_submissions(scope: dict, month: int = None, year: int = None, status: str = None,
                     penalty_status: str = None, search: str = None,
                     page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
    """
    Submissions inside a scope, newest first, with pagination.
    status: "Late" / "On-Time"; penalty_status: "Paid" / "Unpaid".
    """
    conditions = []
    params = []
    if month:
        conditions.append("s.month = ?")
        params.append(month)
    if year:
        conditions.append("s.year = ?")
        params.append(year)
    if status == "Late":
        conditions.append("s.is_late = TRUE")
    elif status == "On-Time":
        conditions.append("s.is_late = FALSE")
    if penalty_status == "Paid":
        conditions.append("s.penalty = TRUE")
    elif penalty_status == "Unpaid":
        conditions.append("s.penalty = FALSE")
    if search:
        conditions.append("LOWER(u.company_name) LIKE ? ESCAPE '\\'")
        params.append(f"%{_escape_like(search.strip().lower())}%")

    where, params = _scope_conditions(scope, conditions or ["1=1"], params)
    page = max(int(page or 1), 1)
    limit = max(int(limit or DEFAULT_PAGE_SIZE), 1)
    offset = (page - 1) * limit

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"""SELECT s.submission_id, s.user_id, s.month, s.year, s.submitted_at, s.is_late,
                       s.penalty, s.deadline, s.average_guest_nights,
                       s.average_room_occupancy_rate, s.average_guests_per_room,
                       s.receipt_number, u.company_name, u.accommodation_type
                FROM submissions s
                JOIN users u ON s.user_id = u.user_id
                WHERE {where}
                ORDER BY s.submitted_at DESC
                LIMIT ? OFFSET ?""",
            tuple(params + [limit, offset])
        )
        submissions = rows_to_dicts(cursor.fetchall())

        cursor.execute(
            f"""SELECT COUNT(*) AS total
                FROM submissions s
                JOIN users u ON s.user_id = u.user_id
                WHERE {where}""",
            tuple(params)
        )
        total = cursor.fetchone()['total']

    return {'submissions': submissions, 'total': int(total), 'page': page, 'limit': limit}


# ── Administrators ───────────────────────────────────────────────────

def list_provincial_admins(region: str) -> list:
    where, params = _scope_conditions(
        {'region': region},
        [f"u.role = '{ROLE_PROVINCIAL_ADMIN}'", "u.is_approved = TRUE", "u.is_active = TRUE"],
        [],
    )
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"""SELECT u.user_id, u.email, u.province, u.company_name, u.phone_number
                FROM users u WHERE {where}
                ORDER BY u.province ASC, u.company_name ASC""",
            tuple(params)
        )
        return rows_to_dicts(cursor.fetchall())


def list_municipal_admins(region: str, province: str) -> list:
    where, params = _scope_conditions(
        {'region': region, 'province': province},
        [f"u.role = '{ROLE_MUNICIPAL_ADMIN}'", "u.is_approved = TRUE"],
        [],
    )
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"""SELECT u.user_id, u.email, u.phone_number, u.registered_owner,
                       u.company_name, u.municipality, u.barangay
                FROM users u WHERE {where}
                ORDER BY u.municipality ASC, u.barangay ASC""",
            tuple(params)
        )
        return rows_to_dicts(cursor.fetchall())


def email_exists(email: str) -> bool:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT user_id FROM users WHERE LOWER(email) = ?", (email.strip().lower(),))
        return cursor.fetchone() is not None


def create_user(email: str, password_hash: str, role: str = ROLE_USER, **fields) -> int:
    """Insert a user row and return its id. Extra keyword fields map to columns."""
    columns = ['email', 'password', 'role'] + list(fields.keys())
    values = [email.strip().lower(), password_hash, role] + list(fields.values())
    placeholders = ", ".join("?" for _ in columns)
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"INSERT INTO users ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(values)
        )
        return cursor.lastrowid


def add_municipal_admin(region: str, province: str, email: str, password_hash: str,
                        company_name: str, registered_owner: str, municipality: str,
                        phone_number: str = None, barangay: str = None) -> int:
    """Create an approved, active municipal administrator inside a province."""
    return create_user(
        email,
        password_hash,
        role=ROLE_MUNICIPAL_ADMIN,
        phone_number=phone_number,
        registered_owner=registered_owner,
        company_name=company_name,
        municipality=municipality,
        barangay=barangay,
        region=region,
        province=province,
        is_approved=True,
        is_active=True,
    )


# ── Settings ─────────────────────────────────────────────────────────

def get_auto_approval() -> bool:
    return (get_setting(AUTO_APPROVAL_KEY, 'false') or '').lower() == 'true'


def set_auto_approval(enabled: bool) -> bool:
    set_setting(AUTO_APPROVAL_KEY, 'true' if enabled else 'false')
    return get_auto_approval()

"""
Metrics queries: monthly aggregates, guest breakdowns and per-area summaries.

Every function takes an already-resolved scope (see tdms.scope.resolve_scope);
nothing here trusts request parameters. Monthly results are sparse: months
without submissions are absent, and callers densify with tdms.reconcile when
they need twelve rows.

Only submissions from active, approved establishments are counted, and the
same population is the denominator of every submission rate.
"""
from decimal import Decimal
from typing import Optional

from tdms.config import ROLE_USER, ROLE_MUNICIPAL_ADMIN, ROLE_PROVINCIAL_ADMIN
from tdms.database import get_db, rows_to_dicts
from tdms.reconcile import MONTHLY_METRIC_FIELDS
from tdms.scope import scope_where

AGE_GROUP_SQL = "CASE WHEN g.age < 18 THEN 'Minors' ELSE 'Adults' END"

ESTABLISHMENT_FILTER = (
    f"u.role = '{ROLE_USER}' AND u.is_active = TRUE AND u.is_approved = TRUE"
)

AVERAGE_FIELDS = (
    'average_guest_nights',
    'average_room_occupancy_rate',
    'average_guests_per_room',
)


def _fetch(query: str, params) -> list:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(query, tuple(params))
        return rows_to_dicts(cursor.fetchall())


def _number(value):
    """DB numerics (Decimal, None, str from SQLite NUMERIC) as int/float."""
    if value is None:
        return 0
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0
    return value


def _clean_numbers(row: dict, fields) -> dict:
    for field in fields:
        if field in row:
            row[field] = _number(row[field])
    for field in AVERAGE_FIELDS:
        if field in row:
            row[field] = round(float(row[field]), 2)
    return row


def submission_rate(total_submissions, total_users) -> float:
    """Submissions as a percentage of establishments, 2 dp; 0 when nobody is registered."""
    total_users = _number(total_users)
    if not total_users:
        return 0
    return round(_number(total_submissions) * 100.0 / total_users, 2)


def _scoped(scope: dict, base_conditions: list, base_params: list) -> tuple:
    fragment, params = scope_where(scope, 'u')
    conditions = list(base_conditions)
    if fragment:
        conditions.append(fragment)
    return " AND ".join(conditions), list(base_params) + params


# ── Area lists ───────────────────────────────────────────────────────

def list_municipalities(region: str, province: str) -> list:
    """Municipalities of a province that have a municipal administrator."""
    where, params = _scoped(
        {'region': region, 'province': province},
        [f"u.role = '{ROLE_MUNICIPAL_ADMIN}'", "u.municipality IS NOT NULL", "TRIM(u.municipality) <> ''"],
        [],
    )
    rows = _fetch(
        f"SELECT DISTINCT TRIM(u.municipality) AS municipality FROM users u WHERE {where} "
        "ORDER BY municipality ASC",
        params,
    )
    return [row['municipality'] for row in rows]


def list_provinces(region: str) -> list:
    """Provinces of a region that have an active provincial administrator."""
    where, params = _scoped(
        {'region': region},
        [
            f"u.role = '{ROLE_PROVINCIAL_ADMIN}'",
            "u.province IS NOT NULL", "TRIM(u.province) <> ''",
            "u.is_active = TRUE", "u.is_approved = TRUE",
        ],
        [],
    )
    rows = _fetch(
        f"SELECT DISTINCT TRIM(u.province) AS province FROM users u WHERE {where} "
        "ORDER BY province ASC",
        params,
    )
    return [row['province'] for row in rows]


def count_establishments(scope: dict) -> int:
    """Active, approved establishments inside a scope."""
    where, params = _scoped(scope, [ESTABLISHMENT_FILTER], [])
    rows = _fetch(f"SELECT COUNT(*) AS total FROM users u WHERE {where}", params)
    return int(_number(rows[0]['total'])) if rows else 0


# ── Monthly series (sparse) ──────────────────────────────────────────

def monthly_checkins(year: int, scope: dict) -> list:
    """Total check-ins per month with at least one submission."""
    where, params = _scoped(scope, ["s.year = ?", ESTABLISHMENT_FILTER], [year])
    rows = _fetch(
        f"""
        SELECT s.month, COALESCE(SUM(dm.check_ins), 0) AS total_check_ins
        FROM submissions s
        JOIN users u ON s.user_id = u.user_id
        LEFT JOIN daily_metrics dm ON s.submission_id = dm.submission_id
        WHERE {where}
        GROUP BY s.month
        ORDER BY s.month ASC
        """,
        params,
    )
    return [_clean_numbers(row, ('month', 'total_check_ins')) for row in rows]


def latest_monthly_checkins(year: int, scope: dict) -> list:
    """
    Check-ins per month counting only each establishment's latest submission
    for that month, so resubmissions are not double counted.
    """
    where, params = _scoped(scope, ["s.year = ?", ESTABLISHMENT_FILTER], [year])
    rows = _fetch(
        f"""
        WITH latest_submissions AS (
            SELECT s.submission_id, s.month
            FROM submissions s
            JOIN users u ON s.user_id = u.user_id
            WHERE {where}
              AND s.submitted_at = (
                  SELECT MAX(s2.submitted_at)
                  FROM submissions s2
                  WHERE s2.user_id = s.user_id AND s2.year = s.year AND s2.month = s.month
              )
        )
        SELECT ls.month, COALESCE(SUM(dm.check_ins), 0) AS total_check_ins
        FROM latest_submissions ls
        LEFT JOIN daily_metrics dm ON dm.submission_id = ls.submission_id
        GROUP BY ls.month
        ORDER BY ls.month ASC
        """,
        params,
    )
    return [_clean_numbers(row, ('month', 'total_check_ins')) for row in rows]


def _per_submission_cte(where: str, area_expr: str = None) -> str:
    """
    One row per submission with its daily metrics summed, so submission-level
    averages and room counts are not multiplied by the number of days.
    """
    area_select = f"{area_expr} AS area_key," if area_expr else ""
    area_group = f"{area_expr}," if area_expr else ""
    return f"""
        WITH per_submission AS (
            SELECT
                s.submission_id,
                s.month,
                {area_select}
                s.number_of_rooms,
                s.average_guest_nights,
                s.average_room_occupancy_rate,
                s.average_guests_per_room,
                COALESCE(SUM(dm.check_ins), 0) AS check_ins,
                COALESCE(SUM(dm.overnight), 0) AS overnight,
                COALESCE(SUM(dm.occupied), 0) AS occupied
            FROM submissions s
            JOIN users u ON s.user_id = u.user_id
            LEFT JOIN daily_metrics dm ON s.submission_id = dm.submission_id
            WHERE {where}
            GROUP BY
                s.submission_id, s.month, {area_group}
                s.number_of_rooms, s.average_guest_nights,
                s.average_room_occupancy_rate, s.average_guests_per_room
        )
    """


AGGREGATE_COLUMNS = """
    COALESCE(SUM(ps.check_ins), 0) AS total_check_ins,
    COALESCE(SUM(ps.overnight), 0) AS total_overnight,
    COALESCE(SUM(ps.occupied), 0) AS total_occupied,
    COALESCE(AVG(ps.average_guest_nights), 0) AS average_guest_nights,
    COALESCE(AVG(ps.average_room_occupancy_rate), 0) AS average_room_occupancy_rate,
    COALESCE(AVG(ps.average_guests_per_room), 0) AS average_guests_per_room,
    COUNT(ps.submission_id) AS total_submissions,
    COALESCE(SUM(ps.number_of_rooms), 0) AS total_rooms
"""


def monthly_metrics(year: int, scope: dict) -> list:
    """
    Full monthly aggregate rows for months with submissions, each carrying the
    submission rate against the establishments registered in the scope.
    """
    where, params = _scoped(scope, ["s.year = ?", ESTABLISHMENT_FILTER], [year])
    rows = _fetch(
        _per_submission_cte(where) + f"""
        SELECT ps.month, {AGGREGATE_COLUMNS}
        FROM per_submission ps
        GROUP BY ps.month
        ORDER BY ps.month ASC
        """,
        params,
    )
    total_users = count_establishments(scope)
    for row in rows:
        _clean_numbers(row, ('month',) + MONTHLY_METRIC_FIELDS)
        row['submission_rate'] = submission_rate(row['total_submissions'], total_users)
    return rows


# ── Guest breakdowns for one month ───────────────────────────────────

def _guest_where(year: int, month: int, scope: dict) -> tuple:
    return _scoped(
        scope,
        ["s.year = ?", "s.month = ?", "g.is_check_in = TRUE", ESTABLISHMENT_FILTER],
        [year, month],
    )


GUEST_JOINS = """
    FROM guests g
    JOIN daily_metrics dm ON g.metric_id = dm.metric_id
    JOIN submissions s ON dm.submission_id = s.submission_id
    JOIN users u ON s.user_id = u.user_id
"""


def nationality_counts(year: int, month: int, scope: dict, limit: Optional[int] = None) -> list:
    """Checked-in guests per nationality, highest count first."""
    where, params = _guest_where(year, month, scope)
    query = f"""
        SELECT
            g.nationality,
            COUNT(*) AS count,
            SUM(CASE WHEN g.gender = 'Male' THEN 1 ELSE 0 END) AS male_count,
            SUM(CASE WHEN g.gender = 'Female' THEN 1 ELSE 0 END) AS female_count
        {GUEST_JOINS}
        WHERE {where}
        GROUP BY g.nationality
        ORDER BY COUNT(*) DESC, g.nationality ASC
    """
    if limit:
        query += " LIMIT ?"
        params.append(int(limit))
    rows = _fetch(query, params)
    return [_clean_numbers(row, ('count', 'male_count', 'female_count')) for row in rows]


def nationality_counts_by_establishment(year: int, month: int, scope: dict) -> list:
    where, params = _guest_where(year, month, scope)
    rows = _fetch(
        f"""
        SELECT u.company_name AS establishment, g.nationality, COUNT(*) AS count
        {GUEST_JOINS}
        WHERE {where}
        GROUP BY u.company_name, g.nationality
        ORDER BY u.company_name ASC, g.nationality ASC
        """,
        params,
    )
    return [_clean_numbers(row, ('count',)) for row in rows]


def guest_demographics(year: int, month: int, scope: dict) -> list:
    """Checked-in guests by gender, age group (Minors < 18 <= Adults) and status."""
    where, params = _guest_where(year, month, scope)
    rows = _fetch(
        f"""
        SELECT g.gender, {AGE_GROUP_SQL} AS age_group, g.status, COUNT(*) AS count
        {GUEST_JOINS}
        WHERE {where}
        GROUP BY g.gender, {AGE_GROUP_SQL}, g.status
        ORDER BY g.gender, {AGE_GROUP_SQL}, g.status
        """,
        params,
    )
    return [_clean_numbers(row, ('count',)) for row in rows]


# ── Per-area breakdowns for one month ────────────────────────────────

def _empty_area_row(level: str, name: str) -> dict:
    row = {level: name, 'total_users': 0}
    for field in MONTHLY_METRIC_FIELDS:
        row[field] = 0
    return row


def area_metrics(level: str, areas: list, scope: dict, year: int, month: int) -> list:
    """
    Aggregate one month per child area (province or municipality) of a scope.
    Every area in `areas` gets a row, zero-filled when it has no submissions.
    """
    if level not in ('province', 'municipality'):
        raise ValueError(f"Unsupported area level: {level}")

    area_key = f"UPPER(TRIM(u.{level}))"
    where, params = _scoped(scope, ["s.year = ?", "s.month = ?", ESTABLISHMENT_FILTER], [year, month])
    aggregate_rows = _fetch(
        _per_submission_cte(where, area_key) + f"""
        SELECT ps.area_key, {AGGREGATE_COLUMNS}
        FROM per_submission ps
        GROUP BY ps.area_key
        """,
        params,
    )
    user_where, user_params = _scoped(scope, [ESTABLISHMENT_FILTER], [])
    user_rows = _fetch(
        f"SELECT {area_key} AS area_key, COUNT(*) AS total_users FROM users u "
        f"WHERE {user_where} GROUP BY {area_key}",
        user_params,
    )

    aggregates = {row['area_key']: row for row in aggregate_rows}
    user_counts = {row['area_key']: int(_number(row['total_users'])) for row in user_rows}

    results = []
    for name in areas:
        key = (name or '').strip().upper()
        row = _empty_area_row(level, name)
        if key in aggregates:
            found = dict(aggregates[key])
            found.pop('area_key', None)
            row.update(found)
        row['total_users'] = user_counts.get(key, 0)
        _clean_numbers(row, MONTHLY_METRIC_FIELDS)
        row['submission_rate'] = submission_rate(row['total_submissions'], row['total_users'])
        results.append(row)
    return results


def province_metrics(region: str, year: int, month: int) -> list:
    """Per-province metrics for a region (regional dashboard)."""
    return area_metrics('province', list_provinces(region), {'region': region}, year, month)


def municipality_metrics(region: str, province: str, year: int, month: int) -> list:
    """Per-municipality metrics for a province (provincial dashboard)."""
    return area_metrics(
        'municipality',
        list_municipalities(region, province),
        {'region': region, 'province': province},
        year,
        month,
    )


def regional_overview(region: str, year: int, month: int) -> dict:
    """Region-wide totals for one month plus each province's submission rate."""
    provinces = province_metrics(region, year, month)

    total_users = sum(row['total_users'] for row in provinces)
    total_submissions = sum(row['total_submissions'] for row in provinces)
    rates = [row['submission_rate'] for row in provinces]

    return {
        'total_users': total_users,
        'total_provinces': len(provinces),
        'total_rooms': sum(row['total_rooms'] for row in provinces),
        'total_submissions': total_submissions,
        'total_check_ins': sum(row['total_check_ins'] for row in provinces),
        'total_overnight': sum(row['total_overnight'] for row in provinces),
        'total_occupied': sum(row['total_occupied'] for row in provinces),
        'overall_submission_rate': submission_rate(total_submissions, total_users),
        'avg_province_submission_rate': round(sum(rates) / len(rates), 2) if rates else 0,
        'province_breakdown': [
            {
                'province': row['province'],
                'submission_rate': row['submission_rate'],
                'submissions': row['total_submissions'],
                'users': row['total_users'],
            }
            for row in provinces
        ],
    }

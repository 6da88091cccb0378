"""
Monthly reconciliation of sparse aggregate rows.

Metrics queries only return rows for months that have at least one submission.
Tables and charts need a full January..December sequence, so every caller
densifies through densify_months() with the field schema it renders.
"""
import math
from numbers import Number
from typing import Iterable, Optional, Sequence

MONTHS = tuple(range(1, 13))

CHECK_IN_FIELDS = ('total_check_ins',)

MONTHLY_METRIC_FIELDS = (
    'total_check_ins',
    'total_overnight',
    'total_occupied',
    'average_guest_nights',
    'average_room_occupancy_rate',
    'average_guests_per_room',
    'total_submissions',
    'submission_rate',
    'total_rooms',
)


def _finite(number, default):
    return number if math.isfinite(number) else default


def to_number(value, default=0):
    """
    Coerce a JSON/DB value to a number.
    Numeric strings ("5", "12.50") are parsed; NaN, infinities and anything
    else yield default.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, Number):
        # Decimal from PostgreSQL NUMERIC columns
        try:
            return _finite(float(value), default)
        except (TypeError, ValueError, OverflowError):
            return default
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return _finite(float(text), default)
        except ValueError:
            return default
    return default


def _month_of(row) -> Optional[int]:
    if not isinstance(row, dict):
        return None
    month = to_number(row.get('month'), default=None)
    if month is None or int(month) != month:
        return None
    month = int(month)
    return month if month in MONTHS else None


def zero_row(month: int, fields: Sequence[str] = MONTHLY_METRIC_FIELDS) -> dict:
    """A synthesized row for a month without submissions."""
    row = {'month': month}
    for field in fields:
        row[field] = 0
    return row


def densify_months(rows: Optional[Iterable[dict]], fields: Sequence[str] = MONTHLY_METRIC_FIELDS) -> list:
    """
    Expand sparse month-keyed rows into exactly twelve rows, months 1..12 in order.

    Input rows may arrive in any order; duplicate months resolve to the last one
    seen. Months missing from the input get an all-zero row. A present row keeps
    its values untouched, and any schema field it lacks is filled with 0.
    Rows with no usable month (1-12) are dropped. Never raises.
    """
    by_month = {}
    for row in rows or ():
        month = _month_of(row)
        if month is not None:
            by_month[month] = row

    dense = []
    for month in MONTHS:
        source = by_month.get(month)
        if source is None:
            dense.append(zero_row(month, fields))
            continue
        row = dict(source)
        row['month'] = month
        for field in fields:
            if row.get(field) is None:
                row[field] = 0
        dense.append(row)
    return dense


def sort_nationality_counts(rows: Optional[Iterable[dict]]) -> list:
    """
    Order nationality rows by count, highest first.
    Counts are coerced with to_number (missing or non-numeric counts as 0).
    The sort is stable: equal counts keep their input order.
    """
    items = [row for row in (rows or ()) if isinstance(row, dict)]
    return sorted(items, key=lambda row: to_number(row.get('count')), reverse=True)

"""
Shared test fixtures -- mock data for unit and integration tests.
"""


# ── User fixtures ────────────────────────────────────────────────────

def make_user(
    user_id=1,
    email="owner@hotel.test",
    role="user",
    region="REGION VII",
    province="BOHOL",
    municipality="PANGLAO",
    company_name="Test Hotel",
):
    """Build a user dict as returned by load_user()."""
    return {
        "user_id": user_id,
        "email": email,
        "role": role,
        "region": region,
        "province": province,
        "municipality": municipality,
        "company_name": company_name,
    }


ESTABLISHMENT_USER = make_user()

MUNICIPAL_ADMIN = make_user(
    user_id=10,
    email="panglao.admin@tdms.test",
    role="admin",
    company_name="Panglao Tourism Office",
)

PROVINCIAL_ADMIN = make_user(
    user_id=20,
    email="bohol.admin@tdms.test",
    role="p_admin",
    municipality=None,
    company_name="Bohol Provincial Tourism Office",
)

REGIONAL_ADMIN = make_user(
    user_id=30,
    email="region7.admin@tdms.test",
    role="r_admin",
    province=None,
    municipality=None,
    company_name="Region VII Tourism Office",
)


# ── Metric rows ──────────────────────────────────────────────────────

def make_metric_row(month, **values):
    """A sparse monthly aggregate row as the metrics endpoints return it."""
    row = {
        "month": month,
        "total_check_ins": 0,
        "total_overnight": 0,
        "total_occupied": 0,
        "average_guest_nights": 0,
        "average_room_occupancy_rate": 0,
        "average_guests_per_room": 0,
        "total_submissions": 0,
        "submission_rate": 0,
        "total_rooms": 0,
    }
    row.update(values)
    return row


SAMPLE_NATIONALITY_COUNTS = [
    {"nationality": "Korean", "count": 12},
    {"nationality": "Filipino", "count": 40},
    {"nationality": "Japanese", "count": 12},
    {"nationality": "American", "count": "7"},
]

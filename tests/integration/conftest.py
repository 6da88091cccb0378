"""
Integration test conftest -- test database setup, seed helpers and FastAPI TestClient.
"""
import os
import sys
import pytest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

# Force SQLite for integration tests
os.environ["DATABASE_URL"] = ""
os.environ["SECRET_KEY"] = "integration-test-secret-key"
os.environ["ENABLE_SCHEDULER"] = "false"

from starlette.testclient import TestClient

PASSWORD = "testpass123"


@pytest.fixture(scope="session")
def test_db():
    """Initialize a fresh SQLite test database."""
    import tdms.config as config

    # Use a temp file for test DB
    test_db_path = Path(__file__).resolve().parent.parent.parent / "test_tdms.db"
    config.DATABASE_PATH = test_db_path

    # Remove old test DB if exists
    if test_db_path.exists():
        test_db_path.unlink()

    from tdms.database import init_database
    init_database()

    yield test_db_path

    # Cleanup
    if test_db_path.exists():
        test_db_path.unlink()


@pytest.fixture(scope="session")
def client(test_db, app):
    """TestClient bound to the test database; startup runs init_database again."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def clean_db(test_db):
    """Empty every table before a test that seeds its own data."""
    from tdms.database import get_db, DROP_ORDER
    with get_db() as conn:
        cursor = conn.cursor()
        for table in DROP_ORDER:
            if table != "app_settings":
                cursor.execute(f"DELETE FROM {table}")
        cursor.execute("UPDATE app_settings SET value = 'false' WHERE key = 'auto_approval'")
    return test_db


@pytest.fixture
def create_user(clean_db):
    """Helper to insert a user with a known password; returns the new user_id."""
    from tdms.accounts import create_user as insert_user
    from tdms.auth import hash_password

    pw_hash = hash_password(PASSWORD)

    def _create(email, role="user", region="REGION VII", province="BOHOL", municipality="PANGLAO",
                is_approved=True, is_active=True, **fields):
        fields.setdefault("company_name", email.split("@")[0].title())
        return insert_user(
            email, pw_hash, role=role, region=region, province=province, municipality=municipality,
            is_approved=is_approved, is_active=is_active, **fields,
        )

    return _create


@pytest.fixture
def create_submission(clean_db):
    """Helper to insert a submission with daily metrics and guests."""
    from tdms.database import get_db

    def _create(user_id, month, year=2024, days=((10, 8, 5),), guests=(), rooms=10,
                averages=(2.0, 50.0, 1.5), submitted_at=None, is_late=False, penalty=False):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """INSERT INTO submissions
                   (user_id, month, year, is_late, penalty, number_of_rooms, average_guest_nights,
                    average_room_occupancy_rate, average_guests_per_room, submitted_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))""",
                (user_id, month, year, is_late, penalty, rooms, *averages, submitted_at),
            )
            submission_id = cursor.lastrowid
            metric_id = None
            for day, (check_ins, overnight, occupied) in enumerate(days, start=1):
                cursor.execute(
                    """INSERT INTO daily_metrics (submission_id, day, check_ins, overnight, occupied)
                       VALUES (?, ?, ?, ?, ?)""",
                    (submission_id, day, check_ins, overnight, occupied),
                )
                metric_id = metric_id or cursor.lastrowid
            for gender, age, status, nationality in guests:
                cursor.execute(
                    """INSERT INTO guests (metric_id, room_number, gender, age, status, nationality, is_check_in)
                       VALUES (?, 1, ?, ?, ?, ?, TRUE)""",
                    (metric_id, gender, age, status, nationality),
                )
        return submission_id

    return _create


@pytest.fixture
def auth_headers(client):
    """Log in through /auth/login and return the Authorization header."""
    def _login(email, password=PASSWORD):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture
def seeded(create_user, create_submission):
    """
    A small Region VII dataset:
      BOHOL: PANGLAO (2 hotels, 1 pending), DAUIS (1 hotel)
      CEBU:  MANDAUE (1 hotel)
    plus one admin per tier.
    """
    ids = {
        'r_admin': create_user("region7@tdms.test", role="r_admin", province=None, municipality=None),
        'p_admin': create_user("bohol@tdms.test", role="p_admin", municipality=None),
        'cebu_admin': create_user("cebu@tdms.test", role="p_admin", province="CEBU", municipality=None),
        'admin': create_user("panglao@tdms.test", role="admin"),
        'dauis_admin': create_user("dauis@tdms.test", role="admin", municipality="DAUIS"),
        'mandaue_admin': create_user("mandaue@tdms.test", role="admin", province="CEBU", municipality="MANDAUE"),
        'alona': create_user("alona@hotel.test", company_name="Alona Inn", email_verified=True),
        'bluewater': create_user("bluewater@hotel.test", company_name="Bluewater Resort"),
        'pending': create_user("pending@hotel.test", company_name="Pending Pension", is_approved=False),
        'dauis_inn': create_user("dauis@hotel.test", municipality="DAUIS", company_name="Dauis Inn"),
        'mandaue_inn': create_user("mandaue@hotel.test", province="CEBU", municipality="MANDAUE",
                                   company_name="Mandaue Suites"),
    }
    create_submission(ids['alona'], 3, days=((10, 8, 5), (6, 4, 3)), guests=(
        ("Male", 30, "Single", "Korean"), ("Female", 12, "Single", "Korean"), ("Female", 40, "Married", "American"),
    ), is_late=True)
    create_submission(ids['bluewater'], 3, days=((4, 4, 2),), guests=(("Male", 50, "Married", "Japanese"),))
    create_submission(ids['dauis_inn'], 3, days=((7, 7, 7),), guests=(("Male", 22, "Single", "German"),))
    create_submission(ids['mandaue_inn'], 5, days=((100, 50, 40),), guests=(("Female", 33, "Single", "Chinese"),))
    return ids

"""
Database connection and schema management.
Supports both SQLite (local development, tests) and PostgreSQL (production).
"""
import sqlite3
from contextlib import contextmanager

from tdms import config
from tdms.config import USE_POSTGRES

# PostgreSQL support
if USE_POSTGRES:
    import psycopg2
    from psycopg2.extras import RealDictCursor


class DictRow:
    """Wrapper to make psycopg2 results behave like sqlite3.Row"""
    def __init__(self, data):
        self._data = data
        self._keys = list(data.keys()) if data else []

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._data[self._keys[key]]
        return self._data[key]

    def __iter__(self):
        return iter(self._data.values())

    def keys(self):
        return self._keys


def get_db_connection():
    """Create a database connection with row factory."""
    if USE_POSTGRES:
        return psycopg2.connect(config.DATABASE_URL)
    conn = sqlite3.connect(str(config.DATABASE_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class PostgresCursorWrapper:
    """Wrapper to make a PostgreSQL cursor accept the SQLite dialect used in this package."""
    def __init__(self, cursor):
        self._cursor = cursor

    def execute(self, query, params=None):
        # Convert SQLite ? placeholders to PostgreSQL %s
        query = query.replace('?', '%s')
        query = query.replace('INTEGER PRIMARY KEY AUTOINCREMENT', 'SERIAL PRIMARY KEY')
        if 'INSERT OR IGNORE' in query.upper():
            query = query.replace('INSERT OR IGNORE', 'INSERT')
            query = query.rstrip().rstrip(';') + ' ON CONFLICT DO NOTHING'
        if query.strip().upper().startswith('PRAGMA'):
            return self
        if params:
            self._cursor.execute(query, params)
        else:
            self._cursor.execute(query)
        return self

    def executemany(self, query, params_list):
        for params in params_list:
            self.execute(query, params)
        return self

    def fetchone(self):
        row = self._cursor.fetchone()
        return DictRow(row) if row else None

    def fetchall(self):
        return [DictRow(row) for row in self._cursor.fetchall()]

    @property
    def lastrowid(self):
        self._cursor.execute("SELECT lastval()")
        return self._cursor.fetchone()['lastval']

    @property
    def rowcount(self):
        return self._cursor.rowcount


class PostgresConnection:
    """Connection facade exposing the sqlite3-style cursor()/execute() surface."""
    def __init__(self, conn):
        self._conn = conn
        self._cursor = PostgresCursorWrapper(conn.cursor(cursor_factory=RealDictCursor))

    def cursor(self):
        return self._cursor

    def execute(self, *args, **kwargs):
        return self._cursor.execute(*args, **kwargs)

    def commit(self):
        return self._conn.commit()

    def rollback(self):
        return self._conn.rollback()


@contextmanager
def get_db():
    """Context manager for database connections. Commits on success, rolls back on error."""
    conn = get_db_connection()
    try:
        if USE_POSTGRES:
            yield PostgresConnection(conn)
        else:
            yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def rows_to_dicts(rows) -> list:
    """Convert sqlite3.Row / DictRow results into plain dicts."""
    return [{key: row[key] for key in row.keys()} for row in rows]


def row_to_dict(row):
    if row is None:
        return None
    return {key: row[key] for key in row.keys()}


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        email VARCHAR(255) NOT NULL UNIQUE,
        password VARCHAR(255) NOT NULL,
        role VARCHAR(50) DEFAULT 'user',
        is_approved BOOLEAN DEFAULT FALSE,
        phone_number VARCHAR(15),
        registered_owner VARCHAR(255),
        tin VARCHAR(20),
        company_address TEXT,
        accommodation_type VARCHAR(50),
        number_of_rooms INTEGER,
        company_name VARCHAR(255),
        accommodation_code VARCHAR(3),
        region VARCHAR(255),
        province VARCHAR(255),
        municipality VARCHAR(255),
        barangay VARCHAR(255),
        is_active BOOLEAN DEFAULT TRUE,
        date_established DATE,
        email_verified BOOLEAN DEFAULT FALSE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS submissions (
        submission_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER REFERENCES users(user_id) ON DELETE CASCADE,
        month INTEGER NOT NULL,
        year INTEGER NOT NULL,
        deadline TIMESTAMP,
        is_late BOOLEAN DEFAULT FALSE,
        submitted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        penalty BOOLEAN DEFAULT FALSE,
        penalty_amount NUMERIC(10,2) DEFAULT 0.0,
        average_guest_nights NUMERIC(10,2),
        average_room_occupancy_rate NUMERIC(10,2),
        average_guests_per_room NUMERIC(10,2),
        number_of_rooms INTEGER,
        receipt_number VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_metrics (
        metric_id INTEGER PRIMARY KEY AUTOINCREMENT,
        submission_id INTEGER REFERENCES submissions(submission_id) ON DELETE CASCADE,
        day INTEGER NOT NULL,
        check_ins INTEGER NOT NULL,
        overnight INTEGER NOT NULL,
        occupied INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS guests (
        guest_id INTEGER PRIMARY KEY AUTOINCREMENT,
        metric_id INTEGER REFERENCES daily_metrics(metric_id) ON DELETE CASCADE,
        room_number INTEGER NOT NULL,
        gender VARCHAR(50) NOT NULL,
        age INTEGER NOT NULL,
        status VARCHAR(50) NOT NULL,
        nationality VARCHAR(100) NOT NULL,
        is_check_in BOOLEAN DEFAULT TRUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS draft_submissions (
        draft_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
        month INTEGER NOT NULL,
        year INTEGER NOT NULL,
        data TEXT,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, month, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS draft_stays (
        stay_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
        data TEXT,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key VARCHAR(100) PRIMARY KEY,
        value VARCHAR(255)
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_submissions_month_year ON submissions(month, year)",
    "CREATE INDEX IF NOT EXISTS idx_submissions_user ON submissions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_submissions_user_month_year ON submissions(user_id, month, year)",
    "CREATE INDEX IF NOT EXISTS idx_daily_metrics_submission ON daily_metrics(submission_id)",
    "CREATE INDEX IF NOT EXISTS idx_guests_metric ON guests(metric_id)",
    "CREATE INDEX IF NOT EXISTS idx_draft_submissions_user ON draft_submissions(user_id)",
]

DROP_ORDER = [
    "guests", "daily_metrics", "submissions", "draft_submissions",
    "draft_stays", "app_settings", "users",
]


def init_database():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()
        for statement in SCHEMA:
            cursor.execute(statement)
        for statement in INDEXES:
            cursor.execute(statement)
        cursor.execute(
            "INSERT OR IGNORE INTO app_settings (key, value) VALUES ('auto_approval', 'false')"
        )


def get_setting(key: str, default: str = None) -> str:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT value FROM app_settings WHERE key = ?", (key,))
        row = cursor.fetchone()
    return row['value'] if row else default


def set_setting(key: str, value: str) -> None:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("UPDATE app_settings SET value = ? WHERE key = ?", (value, key))
        if cursor.rowcount == 0:
            cursor.execute("INSERT INTO app_settings (key, value) VALUES (?, ?)", (key, value))

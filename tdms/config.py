"""
Application configuration settings.
"""
import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file if it exists (for local development)
env_file = BASE_DIR / ".env"
if env_file.exists():
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Server
PORT = int(os.getenv("PORT", "5000"))
API_BASE_URL = os.getenv("API_BASE_URL") or os.getenv("VITE_API_BASE_URL") or f"http://127.0.0.1:{PORT}"
APP_ENV = (os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "production").lower()
IS_DEVELOPMENT = APP_ENV == "development"

# Database - Support both SQLite (local) and PostgreSQL (production)
DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_PATH = BASE_DIR / "tdms.db"

# Determine if using PostgreSQL
USE_POSTGRES = DATABASE_URL.startswith("postgres")

# Hosted providers hand out postgres:// but psycopg2 needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-this-tdms-secret-key-in-production")
TOKEN_SALT = "tdms-auth-token"
TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", str(60 * 60 * 24)))  # 24 hours in seconds

# Mail
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USER or "no-reply@tdms.local")
MAIL_SIGNATURE = os.getenv("MAIL_SIGNATURE", "Panglao Tourism Office")
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:3000")

# Scheduler
ENABLE_SCHEDULER = _env_bool("ENABLE_SCHEDULER", "true")
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "Asia/Manila")

# Logging
LOG_DIR = os.getenv("LOG_DIR", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# File paths
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# Roles
ROLE_USER = "user"
ROLE_MUNICIPAL_ADMIN = "admin"
ROLE_PROVINCIAL_ADMIN = "p_admin"
ROLE_REGIONAL_ADMIN = "r_admin"

# Sentinel sent by dashboards meaning "no narrowing at this level"
ALL_SCOPE = "ALL"

# Submissions are due on this day of the month following the reporting period
SUBMISSION_DEADLINE_DAY = 10
DEADLINE_TIME_LABEL = "11:59 PM"

# Year window accepted by the metrics endpoints
MIN_REPORT_YEAR = 2000
MAX_REPORT_YEAR = 2100

# Regional nationality ranking is capped
REGIONAL_NATIONALITY_LIMIT = 20

# Submission listing pagination
DEFAULT_PAGE_SIZE = 20

# Accommodation type -> three-letter code
ACCOMMODATION_CODES = {
    "Hotel": "HTL",
    "Condotel": "CON",
    "Serviced Residence": "SER",
    "Resort": "RES",
    "Apartelle": "APA",
    "Motel": "MOT",
    "Pension House": "PEN",
    "Home Stay Site": "HSS",
    "Tourist Inn": "TIN",
    "Other": "OTH",
}
DEFAULT_ACCOMMODATION_CODE = "OTH"

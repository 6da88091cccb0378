"""
Shared test setup: environment for every test level and the FastAPI app fixture.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# SQLite only, a throwaway signing key, and no reminder jobs
os.environ["DATABASE_URL"] = ""
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ.setdefault("SMTP_HOST", "")


@pytest.fixture(scope="session")
def app():
    """The TDMS FastAPI application, imported once the environment is in place."""
    from tdms.main import app as tdms_app
    return tdms_app

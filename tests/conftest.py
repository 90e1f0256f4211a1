"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core import config, database  # noqa: E402
from core.database import get_connection, init_schema  # noqa: E402

# base64 of a fixed 32-byte key
TEST_ENCRYPTION_KEY = "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY="


@pytest.fixture(autouse=True)
def billing_env(monkeypatch, tmp_path):
    """Point every test at its own database and disable outbound email."""
    db_path = tmp_path / "ticket-billing.db"
    monkeypatch.setattr(database, "DB_PATH", db_path)
    monkeypatch.setattr(config, "ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setattr(config, "RECONCILIATION_EMAIL", "")
    monkeypatch.setattr(config, "FROM_EMAIL", "")
    return db_path


@pytest.fixture
def db_path(billing_env):
    """Initialized database file."""
    conn = get_connection(billing_env)
    init_schema(conn)
    conn.close()
    return billing_env


@pytest.fixture
def conn(db_path):
    """Connection to an initialized database."""
    connection = get_connection(db_path)
    yield connection
    connection.close()


@pytest.fixture
def fake_xero():
    from fixtures.fake_xero import FakeXeroClient

    return FakeXeroClient()

"""
SQLite database operations and schema for the billing engine.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from core.config import DB_PATH

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS clients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        company_name TEXT NOT NULL,
        xero_customer_id TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contacts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        client_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        email TEXT,
        FOREIGN KEY (client_id) REFERENCES clients(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tickets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        client_id INTEGER NOT NULL,
        contact_id INTEGER NOT NULL,
        description TEXT,
        state TEXT NOT NULL DEFAULT 'open' CHECK(state IN ('open', 'closed')),
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (client_id) REFERENCES clients(id),
        FOREIGN KEY (contact_id) REFERENCES contacts(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS time_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ticket_id INTEGER NOT NULL,
        work_date TEXT NOT NULL,
        duration_hours REAL NOT NULL CHECK(duration_hours > 0 AND duration_hours <= 24),
        billable INTEGER NOT NULL DEFAULT 1,
        deleted_at TEXT,
        FOREIGN KEY (ticket_id) REFERENCES tickets(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS invoice_locks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        month TEXT NOT NULL UNIQUE,
        xero_invoice_ids TEXT NOT NULL DEFAULT '[]',
        invoice_metadata TEXT NOT NULL DEFAULT '[]',
        locked_at TEXT DEFAULT CURRENT_TIMESTAMP,
        locked_by TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS invoice_config (
        id INTEGER PRIMARY KEY CHECK(id = 1),
        xero_invoice_status TEXT NOT NULL DEFAULT 'DRAFT'
            CHECK(xero_invoice_status IN ('DRAFT', 'AUTHORISED')),
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS xero_connections (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        organization_name TEXT,
        organization_id TEXT NOT NULL,
        access_token TEXT NOT NULL,
        refresh_token TEXT NOT NULL,
        token_expires_at TEXT NOT NULL,
        connected_at TEXT DEFAULT CURRENT_TIMESTAMP,
        last_sync_at TEXT,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT UNIQUE NOT NULL,
        timestamp TEXT NOT NULL,
        endpoint TEXT NOT NULL,
        method TEXT NOT NULL,
        client_ip TEXT,
        month TEXT,
        status_code INTEGER NOT NULL,
        error_code TEXT,
        error_message TEXT,
        processing_time_ms INTEGER NOT NULL,
        clients_invoiced INTEGER,
        total_hours REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_request_details (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT NOT NULL,
        detail_type TEXT NOT NULL CHECK(detail_type IN ('error_detail', 'invoice_created', 'warning')),
        message TEXT NOT NULL,
        FOREIGN KEY (request_id) REFERENCES api_requests(request_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        operator TEXT NOT NULL,
        action TEXT NOT NULL,
        month TEXT,
        lock_id INTEGER,
        success INTEGER NOT NULL,
        error_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_time_entries_work_date ON time_entries(work_date)",
    "CREATE INDEX IF NOT EXISTS idx_invoice_locks_month ON invoice_locks(month)",
    "CREATE INDEX IF NOT EXISTS idx_api_requests_timestamp ON api_requests(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_api_requests_status ON api_requests(status_code)",
    "CREATE INDEX IF NOT EXISTS idx_api_request_details_request ON api_request_details(request_id)",
    "CREATE INDEX IF NOT EXISTS idx_audit_logs_timestamp ON audit_logs(timestamp)",
]


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """Get a database connection with row access by column name."""
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist."""
    cursor = conn.cursor()
    for statement in SCHEMA:
        cursor.execute(statement)
    conn.commit()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block inside a single transaction.

    Joins a transaction that is already open on the connection. Commits on
    success, rolls back and re-raises on any exception.
    """
    if not conn.in_transaction:
        conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()

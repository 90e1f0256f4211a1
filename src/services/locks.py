"""
Month lock store.

A month lock records that a calendar month has been billed, with the Xero
invoice ids created for it. The UNIQUE constraint on month is the only
mutual exclusion between concurrent generation runs.

None of these functions commit: the caller owns the transaction.
"""

import json
import sqlite3
from datetime import date

from core.errors import InvoiceLockError, NotFoundError
from core.months import month_key, parse_month
from models.billing import InvoiceMetadata, InvoiceRemoval, MonthLock

LOCK_COLUMNS = "id, month, xero_invoice_ids, invoice_metadata, locked_at, locked_by"


def _row_to_lock(row: sqlite3.Row) -> MonthLock:
    return MonthLock(
        id=row["id"],
        month=date.fromisoformat(row["month"]),
        xero_invoice_ids=tuple(json.loads(row["xero_invoice_ids"] or "[]")),
        invoice_metadata=tuple(
            InvoiceMetadata.from_dict(item) for item in json.loads(row["invoice_metadata"] or "[]")
        ),
        locked_at=row["locked_at"],
        locked_by=row["locked_by"],
    )


def is_month_locked(conn: sqlite3.Connection, month: str | date) -> bool:
    """Check whether the month containing this date (or YYYY-MM) is locked."""
    cursor = conn.execute(
        "SELECT 1 FROM invoice_locks WHERE month = ?",
        (parse_month(month).isoformat(),),
    )
    return cursor.fetchone() is not None


def ensure_month_unlocked(conn: sqlite3.Connection, work_date: str | date) -> None:
    """
    Guard for anything that mutates time entries or bills a month.

    Raises:
        InvoiceLockError: If the month is locked
    """
    if is_month_locked(conn, work_date):
        raise InvoiceLockError(
            f"Cannot modify time entries for locked month {month_key(work_date)}"
        )


def get_lock(conn: sqlite3.Connection, lock_id: int) -> MonthLock | None:
    row = conn.execute(
        f"SELECT {LOCK_COLUMNS} FROM invoice_locks WHERE id = ?", (lock_id,)
    ).fetchone()
    return _row_to_lock(row) if row else None


def get_lock_by_month(conn: sqlite3.Connection, month: str | date) -> MonthLock | None:
    row = conn.execute(
        f"SELECT {LOCK_COLUMNS} FROM invoice_locks WHERE month = ?",
        (parse_month(month).isoformat(),),
    ).fetchone()
    return _row_to_lock(row) if row else None


def get_all_locks(conn: sqlite3.Connection) -> list[MonthLock]:
    """All locks, most recent month first."""
    rows = conn.execute(
        f"SELECT {LOCK_COLUMNS} FROM invoice_locks ORDER BY month DESC"
    ).fetchall()
    return [_row_to_lock(row) for row in rows]


def create_lock(
    conn: sqlite3.Connection,
    month: str | date,
    xero_invoice_ids: list[str] | tuple[str, ...] = (),
    invoice_metadata: list[InvoiceMetadata] | tuple[InvoiceMetadata, ...] = (),
    locked_by: str | None = None,
) -> MonthLock:
    """
    Lock a month.

    Raises:
        ValidationError: If the month is malformed
        sqlite3.IntegrityError: If the month is already locked
    """
    month_start = parse_month(month)
    cursor = conn.execute(
        """
        INSERT INTO invoice_locks (month, xero_invoice_ids, invoice_metadata, locked_by)
        VALUES (?, ?, ?, ?)
        """,
        (
            month_start.isoformat(),
            json.dumps(list(xero_invoice_ids)),
            json.dumps([item.to_dict() for item in invoice_metadata]),
            locked_by,
        ),
    )
    return get_lock(conn, cursor.lastrowid)


def remove_invoice(
    conn: sqlite3.Connection, lock_id: int, xero_invoice_id: str
) -> InvoiceRemoval:
    """
    Remove one Xero invoice from a lock.

    Deletes the whole lock when its last invoice is removed, since a month
    with no invoices is not billed.

    Raises:
        NotFoundError: If the lock or the invoice id within it does not exist
    """
    lock = get_lock(conn, lock_id)
    if lock is None:
        raise NotFoundError(f"Invoice lock {lock_id} not found")
    if xero_invoice_id not in lock.xero_invoice_ids:
        raise NotFoundError(
            f"Invoice {xero_invoice_id} not found in lock for {lock.month_key}"
        )

    remaining_ids = tuple(i for i in lock.xero_invoice_ids if i != xero_invoice_id)
    remaining_metadata = [
        item for item in lock.invoice_metadata if item.xero_invoice_id != xero_invoice_id
    ]

    if not remaining_ids:
        conn.execute("DELETE FROM invoice_locks WHERE id = ?", (lock_id,))
        return InvoiceRemoval(
            lock_id=lock_id,
            month=lock.month,
            xero_invoice_id=xero_invoice_id,
            lock_deleted=True,
        )

    conn.execute(
        "UPDATE invoice_locks SET xero_invoice_ids = ?, invoice_metadata = ? WHERE id = ?",
        (
            json.dumps(list(remaining_ids)),
            json.dumps([item.to_dict() for item in remaining_metadata]),
            lock_id,
        ),
    )
    return InvoiceRemoval(
        lock_id=lock_id,
        month=lock.month,
        xero_invoice_id=xero_invoice_id,
        lock_deleted=False,
        remaining_invoice_ids=remaining_ids,
    )


def delete_lock(conn: sqlite3.Connection, lock_id: int) -> MonthLock:
    """
    Delete a lock unconditionally, re-opening its month.

    Raises:
        NotFoundError: If the lock does not exist
    """
    lock = get_lock(conn, lock_id)
    if lock is None:
        raise NotFoundError(f"Invoice lock {lock_id} not found")
    conn.execute("DELETE FROM invoice_locks WHERE id = ?", (lock_id,))
    return lock

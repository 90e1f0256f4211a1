"""
Month lock maintenance.

Re-opens billed months and removes single invoices from a lock without
re-running generation. Neither operation touches Xero: invoices that exist
there stay until they are voided in Xero.
"""

import logging
import sqlite3

from core.database import transaction
from core.errors import ValidationError
from models.billing import InvoiceRemoval, MonthLock
from services.locks import delete_lock, remove_invoice

logger = logging.getLogger(__name__)


def parse_lock_id(value) -> int:
    """
    Validate a lock id supplied by an operator.

    Raises:
        ValidationError: If the value is not a positive integer
    """
    try:
        lock_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid invoice ID", details=[f"Received: {value!r}"]) from None
    if lock_id <= 0:
        raise ValidationError("Invalid invoice ID", details=[f"Received: {value!r}"])
    return lock_id


def delete_month_lock(
    conn: sqlite3.Connection, lock_id, operator: str | None = None
) -> MonthLock:
    """
    Delete a month lock so the month can be billed again.

    Raises:
        ValidationError: If the lock id is malformed
        NotFoundError: If the lock does not exist
    """
    lock_id = parse_lock_id(lock_id)
    with transaction(conn):
        lock = delete_lock(conn, lock_id)

    logger.warning(
        f"Lock for {lock.month_key} deleted by {operator or 'unknown operator'}; "
        f"{len(lock.xero_invoice_ids)} Xero invoices remain in Xero: "
        f"{', '.join(lock.xero_invoice_ids) or 'none'}"
    )
    return lock


def remove_invoice_from_lock(
    conn: sqlite3.Connection,
    lock_id,
    xero_invoice_id: str,
    operator: str | None = None,
) -> InvoiceRemoval:
    """
    Remove one invoice from a month lock, deleting the lock if it was the last.

    Raises:
        ValidationError: If the lock id or invoice id is malformed
        NotFoundError: If the lock or the invoice within it does not exist
    """
    lock_id = parse_lock_id(lock_id)
    xero_invoice_id = (xero_invoice_id or "").strip()
    if not xero_invoice_id:
        raise ValidationError("Xero invoice ID is required")

    with transaction(conn):
        removal = remove_invoice(conn, lock_id, xero_invoice_id)

    if removal.lock_deleted:
        logger.warning(
            f"Invoice {xero_invoice_id} removed by {operator or 'unknown operator'}; "
            f"it was the last invoice, lock for {removal.month:%Y-%m} deleted"
        )
    else:
        logger.warning(
            f"Invoice {xero_invoice_id} removed from lock for {removal.month:%Y-%m} "
            f"by {operator or 'unknown operator'}; "
            f"{len(removal.remaining_invoice_ids)} invoices remain"
        )
    return removal

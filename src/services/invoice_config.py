"""
Invoice configuration (singleton row, id = 1).
"""

import sqlite3

from core.config import DEFAULT_INVOICE_STATUS, VALID_INVOICE_STATUSES
from core.errors import ValidationError
from models.billing import InvoiceConfig


def get_invoice_config(conn: sqlite3.Connection) -> InvoiceConfig:
    """Current configuration; the default applies until a row is saved."""
    row = conn.execute(
        "SELECT xero_invoice_status FROM invoice_config WHERE id = 1"
    ).fetchone()
    if row is None:
        return InvoiceConfig(xero_invoice_status=DEFAULT_INVOICE_STATUS)
    return InvoiceConfig(xero_invoice_status=row["xero_invoice_status"])


def update_invoice_config(conn: sqlite3.Connection, xero_invoice_status: str) -> InvoiceConfig:
    """
    Set the status applied to generated invoices.

    Raises:
        ValidationError: If the status is not DRAFT or AUTHORISED
    """
    status = (xero_invoice_status or "").strip().upper()
    if status not in VALID_INVOICE_STATUSES:
        raise ValidationError(
            "Invalid xeroInvoiceStatus. "
            f"Must be one of: {', '.join(sorted(VALID_INVOICE_STATUSES))}",
            details=[f"Received: {xero_invoice_status!r}"],
        )

    conn.execute(
        """
        INSERT INTO invoice_config (id, xero_invoice_status, updated_at)
        VALUES (1, ?, CURRENT_TIMESTAMP)
        ON CONFLICT (id) DO UPDATE SET
            xero_invoice_status = excluded.xero_invoice_status,
            updated_at = CURRENT_TIMESTAMP
        """,
        (status,),
    )
    conn.commit()
    return InvoiceConfig(xero_invoice_status=status)

"""
Value types for billing previews, invoice drafts and month locks.

All types are frozen dataclasses; hours are Decimal so that totals are exact.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

ZERO_HOURS = Decimal("0")


def to_hours(value: Any) -> Decimal:
    """Convert a stored duration to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# =============================================================================
# TIME ENTRIES & PREVIEW
# =============================================================================


@dataclass(frozen=True)
class TimeEntryRow:
    """One row of the billing read query: a time entry joined with its ticket and client."""

    time_entry_id: int
    work_date: date
    duration_hours: Decimal
    billable: bool
    ticket_id: int
    description: str | None
    client_id: int
    client_name: str
    xero_customer_id: str | None
    contact_id: int | None
    contact_name: str | None
    missing_description: bool

    @classmethod
    def from_db_row(cls, row: sqlite3.Row) -> "TimeEntryRow":
        work_date = row["work_date"]
        if isinstance(work_date, str):
            work_date = date.fromisoformat(work_date[:10])
        return cls(
            time_entry_id=row["time_entry_id"],
            work_date=work_date,
            duration_hours=to_hours(row["duration_hours"]),
            billable=bool(row["billable"]),
            ticket_id=row["ticket_id"],
            description=row["description"],
            client_id=row["client_id"],
            client_name=row["client_name"],
            xero_customer_id=row["xero_customer_id"] or None,
            contact_id=row["contact_id"],
            contact_name=row["contact_name"],
            missing_description=bool(row["missing_description"]),
        )


@dataclass(frozen=True)
class TimeEntry:
    id: int
    work_date: date
    duration_hours: Decimal
    billable: bool


@dataclass(frozen=True)
class TicketBillingGroup:
    ticket_id: int
    description: str | None
    contact_id: int | None
    contact_name: str | None
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    billable: bool
    missing_description: bool
    time_entries: tuple[TimeEntry, ...] = ()


@dataclass(frozen=True)
class ClientBillingGroup:
    client_id: int
    client_name: str
    xero_customer_id: str | None
    subtotal_hours: Decimal  # billable hours only
    tickets: tuple[TicketBillingGroup, ...] = ()


@dataclass(frozen=True)
class BillingPreview:
    month: str  # YYYY-MM
    is_locked: bool
    total_billable_hours: Decimal
    clients: tuple[ClientBillingGroup, ...] = ()


# =============================================================================
# INVOICE DRAFTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceLineItem:
    description: str
    quantity: Decimal
    item_code: str
    unit_amount: Decimal | None = None  # None uses the catalog item's default rate

    def to_xero_payload(self) -> dict:
        payload = {
            "Description": self.description,
            "Quantity": float(self.quantity),
            "ItemCode": self.item_code,
        }
        if self.unit_amount is not None:
            payload["UnitAmount"] = float(self.unit_amount)
        return payload


@dataclass(frozen=True)
class InvoiceDraft:
    """Unsent invoice for one client."""

    client_id: int
    client_name: str
    xero_customer_id: str
    invoice_date: date
    due_date: date
    line_items: tuple[InvoiceLineItem, ...]
    status: str
    reference: str
    billable_hours: Decimal = ZERO_HOURS

    def to_xero_payload(self) -> dict:
        """Accounts receivable invoice body for the Xero Invoices endpoint."""
        return {
            "Type": "ACCREC",
            "Contact": {"ContactID": self.xero_customer_id},
            "Date": self.invoice_date.isoformat(),
            "DueDate": self.due_date.isoformat(),
            "LineItems": [item.to_xero_payload() for item in self.line_items],
            "Status": self.status,
            "Reference": self.reference,
        }


# =============================================================================
# MONTH LOCKS
# =============================================================================


@dataclass(frozen=True)
class InvoiceMetadata:
    """Per-invoice record kept on a month lock."""

    client_id: int
    client_name: str
    xero_invoice_id: str
    hours: Decimal
    line_item_count: int

    def to_dict(self) -> dict:
        return {
            "clientId": self.client_id,
            "clientName": self.client_name,
            "xeroInvoiceId": self.xero_invoice_id,
            "hours": str(self.hours),
            "lineItemCount": self.line_item_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InvoiceMetadata":
        return cls(
            client_id=data["clientId"],
            client_name=data["clientName"],
            xero_invoice_id=data["xeroInvoiceId"],
            hours=to_hours(data["hours"]),
            line_item_count=int(data["lineItemCount"]),
        )


@dataclass(frozen=True)
class MonthLock:
    id: int
    month: date  # first day of the locked month
    xero_invoice_ids: tuple[str, ...]
    invoice_metadata: tuple[InvoiceMetadata, ...]
    locked_at: str
    locked_by: str | None = None

    @property
    def month_key(self) -> str:
        return self.month.strftime("%Y-%m")


@dataclass(frozen=True)
class InvoiceRemoval:
    """Outcome of removing one invoice from a month lock."""

    lock_id: int
    month: date
    xero_invoice_id: str
    lock_deleted: bool
    remaining_invoice_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class LockHistoryEntry:
    lock: MonthLock
    total_billable_hours: Decimal
    client_count: int


# =============================================================================
# CONFIGURATION & RESULTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceConfig:
    xero_invoice_status: str


@dataclass(frozen=True)
class GenerationResult:
    month: str
    clients_invoiced: int
    total_billable_hours: Decimal
    xero_invoice_ids: tuple[str, ...]
    invoice_status: str
    lock_id: int
    message: str
    skipped_clients: tuple[str, ...] = field(default=())

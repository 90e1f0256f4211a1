"""
Invoice Generation Service

Builds monthly billing previews from time entries and turns them into Xero
invoices. Generation runs as a fixed sequence of stages:

    IDLE -> VALIDATING -> BUILDING -> SUBMITTING(i) -> LOCKING -> DONE

with FAILED reachable from every stage. Invoices are submitted one at a time
inside a single local transaction; the month lock is the last write, so the
database only records invoices Xero has already accepted. A failed
submission rolls the transaction back and stops. Invoices that Xero already
created are never deleted automatically: they are reported on the error for
manual reconciliation.
"""

import logging
import sqlite3
from datetime import date
from enum import Enum

from core.config import XERO_ITEM_CODE
from core.database import transaction
from core.errors import (
    BillingError,
    DatabaseError,
    ValidationError,
    XeroApiError,
    XeroSetupError,
)
from core.months import month_key, month_label, parse_month
from models.billing import (
    BillingPreview,
    GenerationResult,
    InvoiceDraft,
    InvoiceMetadata,
    LockHistoryEntry,
)
from services.aggregation import (
    aggregate_time_entries,
    calculate_total_billable,
    fetch_time_entry_rows,
    find_missing_descriptions,
)
from services.invoice_config import get_invoice_config
from services.line_builder import build_invoice_drafts
from services.locks import create_lock, ensure_month_unlocked, get_all_locks, is_month_locked
from services.xero_connections import XeroSession, get_authenticated_client

logger = logging.getLogger(__name__)


# =============================================================================
# PREVIEW & HISTORY
# =============================================================================


def build_preview(conn: sqlite3.Connection, month) -> BillingPreview:
    """
    Aggregate a month's time entries for review.

    Locked months are previewable; they are flagged with is_locked.
    """
    month_start = parse_month(month)
    clients = aggregate_time_entries(fetch_time_entry_rows(conn, month_start))
    return BillingPreview(
        month=month_key(month_start),
        is_locked=is_month_locked(conn, month_start),
        total_billable_hours=calculate_total_billable(clients),
        clients=clients,
    )


def get_invoice_history(conn: sqlite3.Connection) -> list[LockHistoryEntry]:
    """All month locks, most recent first, with the month's billable totals."""
    history = []
    for lock in get_all_locks(conn):
        clients = aggregate_time_entries(fetch_time_entry_rows(conn, lock.month))
        history.append(
            LockHistoryEntry(
                lock=lock,
                total_billable_hours=calculate_total_billable(clients),
                client_count=sum(1 for client in clients if client.subtotal_hours > 0),
            )
        )
    return history


# =============================================================================
# GENERATION
# =============================================================================


class GenerationStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BUILDING = "building"
    SUBMITTING = "submitting"
    LOCKING = "locking"
    DONE = "done"
    FAILED = "failed"


def _missing_descriptions_error(ticket_ids: list[int]) -> ValidationError:
    ticket_list = ", ".join(f"#{ticket_id}" for ticket_id in ticket_ids)
    return ValidationError(
        f"Cannot generate invoices. Missing descriptions for tickets: {ticket_list}",
        details=[f"Ticket #{ticket_id} has no description" for ticket_id in ticket_ids],
        ticket_ids=ticket_ids,
    )


class InvoiceGenerator:
    """
    Runs one invoice generation for one month.

    The Xero session comes from client_factory, called with the connection;
    it defaults to the single active Xero connection.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        client_factory=None,
        item_code: str = XERO_ITEM_CODE,
        today: date | None = None,
    ):
        self.conn = conn
        self.client_factory = client_factory or get_authenticated_client
        self.item_code = item_code
        self.today = today
        self.stage = GenerationStage.IDLE
        self.submitting_index: int | None = None

    def generate(self, month, operator: str | None = None) -> GenerationResult:
        """
        Create Xero invoices for every invoiceable client and lock the month.

        Raises:
            ValidationError: Malformed month, missing ticket descriptions or nothing to invoice
            InvoiceLockError: Month already locked
            XeroConnectionError: No Xero connection
            XeroSetupError: Catalog item missing in Xero
            XeroApiError: A submission failed (created_invoices lists what Xero already has)
            DatabaseError: The lock could not be recorded after invoices were created
        """
        try:
            result = self._run(month, operator)
        except BillingError as e:
            self.stage = GenerationStage.FAILED
            logger.error(f"Invoice generation for {month} failed: {e.code}: {e.message}")
            raise
        except Exception:
            self.stage = GenerationStage.FAILED
            logger.exception(f"Invoice generation for {month} failed unexpectedly")
            raise

        self.stage = GenerationStage.DONE
        return result

    def _run(self, month, operator: str | None) -> GenerationResult:
        self.stage = GenerationStage.VALIDATING
        month_start = parse_month(month)
        label = month_label(month_start)

        ensure_month_unlocked(self.conn, month_start)

        preview = build_preview(self.conn, month_start)
        missing = find_missing_descriptions(preview.clients)
        if missing:
            raise _missing_descriptions_error(missing)

        session = self.client_factory(self.conn)
        if not session.client.verify_catalog_item(session.tenant_id, self.item_code):
            raise XeroSetupError(
                f"Xero item '{self.item_code}' not found. "
                "Create it in Xero before generating invoices."
            )

        self.stage = GenerationStage.BUILDING
        config = get_invoice_config(self.conn)
        drafts = build_invoice_drafts(preview, config, self.item_code, self.today)
        if not drafts:
            raise ValidationError(
                f"No invoices to generate for {label}",
                details=[
                    "Every client is missing a Xero customer id or has no time entries to invoice"
                ],
            )

        skipped_clients = tuple(
            client.client_name for client in preview.clients if not client.xero_customer_id
        )
        logger.info(f"Generating {len(drafts)} invoices for {label} ({config.xero_invoice_status})")

        created: list[InvoiceMetadata] = []
        try:
            with transaction(self.conn):
                for index, draft in enumerate(drafts):
                    created.append(self._submit(session, index, draft, created))

                self.stage = GenerationStage.LOCKING
                lock = self._lock_month(month_start, created, operator)
        except sqlite3.Error as e:
            if isinstance(e, sqlite3.IntegrityError):
                message = f"Month {month_key(month_start)} is already locked"
            else:
                message = f"Failed to record the invoice lock for {month_key(month_start)}"
            error = DatabaseError(
                message,
                details=[str(e)],
                reconciliation_required=bool(created),
            )
            error.record_created_invoices(created)
            raise error from e

        xero_invoice_ids = tuple(item.xero_invoice_id for item in created)
        logger.info(f"Locked {label} with {len(xero_invoice_ids)} invoices")

        return GenerationResult(
            month=month_key(month_start),
            clients_invoiced=len(created),
            total_billable_hours=preview.total_billable_hours,
            xero_invoice_ids=xero_invoice_ids,
            invoice_status=config.xero_invoice_status,
            lock_id=lock.id,
            message=f"Successfully generated {len(created)} invoices for {label}",
            skipped_clients=skipped_clients,
        )

    def _submit(
        self,
        session: XeroSession,
        index: int,
        draft: InvoiceDraft,
        created: list[InvoiceMetadata],
    ) -> InvoiceMetadata:
        """Create one invoice in Xero. No retry: a retry could create a duplicate."""
        self.stage = GenerationStage.SUBMITTING
        self.submitting_index = index

        try:
            invoice_id = session.client.create_invoice(session.tenant_id, draft)
        except BillingError as e:
            e.record_created_invoices(created)
            raise
        except Exception as e:
            error = XeroApiError(
                f"Unexpected error creating the invoice for {draft.client_name}",
                kind="api",
                details=[str(e)],
            )
            error.record_created_invoices(created)
            raise error from e

        logger.info(f"Created Xero invoice {invoice_id} for {draft.client_name}")
        return InvoiceMetadata(
            client_id=draft.client_id,
            client_name=draft.client_name,
            xero_invoice_id=invoice_id,
            hours=draft.billable_hours,
            line_item_count=len(draft.line_items),
        )

    def _lock_month(self, month_start: date, created: list[InvoiceMetadata], operator: str | None):
        if is_month_locked(self.conn, month_start):
            error = DatabaseError(
                f"Month {month_key(month_start)} was locked by another generation run",
                reconciliation_required=True,
            )
            error.record_created_invoices(created)
            raise error

        return create_lock(
            self.conn,
            month_start,
            xero_invoice_ids=[item.xero_invoice_id for item in created],
            invoice_metadata=created,
            locked_by=operator,
        )


def generate_invoices(
    conn: sqlite3.Connection, month, operator: str | None = None
) -> GenerationResult:
    """Generate invoices for a month using the active Xero connection."""
    return InvoiceGenerator(conn).generate(month, operator)

"""Pydantic request/response models for API endpoints."""

from datetime import date

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.errors import BillingError, XeroApiError
from models.billing import (
    BillingPreview,
    ClientBillingGroup,
    GenerationResult,
    InvoiceMetadata,
    LockHistoryEntry,
    TicketBillingGroup,
)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "healthy" or "unhealthy"
    version: str
    database_available: bool
    xero_connected: bool
    timestamp: str  # ISO 8601 UTC
    error: str | None = None


class InvoiceMetadataResponse(CamelModel):
    client_id: int
    client_name: str
    xero_invoice_id: str
    hours: float
    line_item_count: int

    @classmethod
    def from_metadata(cls, item: InvoiceMetadata) -> "InvoiceMetadataResponse":
        return cls(
            client_id=item.client_id,
            client_name=item.client_name,
            xero_invoice_id=item.xero_invoice_id,
            hours=float(item.hours),
            line_item_count=item.line_item_count,
        )


class ErrorResponse(CamelModel):
    """Standard error response."""

    error: str
    code: str
    details: list[str] = []
    retry_after: int | None = None
    reconciliation_required: bool = False
    created_invoices: list[InvoiceMetadataResponse] = []

    @classmethod
    def from_error(cls, exc: BillingError) -> "ErrorResponse":
        return cls(
            error=exc.message,
            code=exc.code,
            details=exc.details,
            retry_after=exc.retry_after if isinstance(exc, XeroApiError) else None,
            reconciliation_required=exc.reconciliation_required,
            created_invoices=[
                InvoiceMetadataResponse.from_metadata(item) for item in exc.created_invoices
            ],
        )


class ErrorCodes:
    """Error code constants used outside the billing error taxonomy."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# PREVIEW
# =============================================================================


class TimeEntryResponse(CamelModel):
    id: int
    work_date: date
    duration_hours: float
    billable: bool


class TicketResponse(CamelModel):
    ticket_id: int
    description: str | None
    contact_id: int | None
    contact_name: str | None
    total_hours: float
    billable_hours: float
    non_billable_hours: float
    billable: bool
    missing_description: bool
    time_entries: list[TimeEntryResponse]

    @classmethod
    def from_group(cls, ticket: TicketBillingGroup) -> "TicketResponse":
        return cls(
            ticket_id=ticket.ticket_id,
            description=ticket.description,
            contact_id=ticket.contact_id,
            contact_name=ticket.contact_name,
            total_hours=float(ticket.total_hours),
            billable_hours=float(ticket.billable_hours),
            non_billable_hours=float(ticket.non_billable_hours),
            billable=ticket.billable,
            missing_description=ticket.missing_description,
            time_entries=[
                TimeEntryResponse(
                    id=entry.id,
                    work_date=entry.work_date,
                    duration_hours=float(entry.duration_hours),
                    billable=entry.billable,
                )
                for entry in ticket.time_entries
            ],
        )


class ClientResponse(CamelModel):
    client_id: int
    client_name: str
    xero_customer_id: str | None
    subtotal_hours: float
    tickets: list[TicketResponse]

    @classmethod
    def from_group(cls, client: ClientBillingGroup) -> "ClientResponse":
        return cls(
            client_id=client.client_id,
            client_name=client.client_name,
            xero_customer_id=client.xero_customer_id,
            subtotal_hours=float(client.subtotal_hours),
            tickets=[TicketResponse.from_group(ticket) for ticket in client.tickets],
        )


class PreviewResponse(CamelModel):
    month: str
    is_locked: bool
    total_billable_hours: float
    clients: list[ClientResponse]

    @classmethod
    def from_preview(cls, preview: BillingPreview) -> "PreviewResponse":
        return cls(
            month=preview.month,
            is_locked=preview.is_locked,
            total_billable_hours=float(preview.total_billable_hours),
            clients=[ClientResponse.from_group(client) for client in preview.clients],
        )


# =============================================================================
# GENERATION
# =============================================================================


class GenerateRequest(CamelModel):
    month: str  # YYYY-MM


class GenerationResponse(CamelModel):
    month: str
    clients_invoiced: int
    total_billable_hours: float
    xero_invoice_ids: list[str]
    invoice_status: str
    lock_id: int
    message: str
    skipped_clients: list[str] = []

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResponse":
        return cls(
            month=result.month,
            clients_invoiced=result.clients_invoiced,
            total_billable_hours=float(result.total_billable_hours),
            xero_invoice_ids=list(result.xero_invoice_ids),
            invoice_status=result.invoice_status,
            lock_id=result.lock_id,
            message=result.message,
            skipped_clients=list(result.skipped_clients),
        )


# =============================================================================
# HISTORY & LOCK MAINTENANCE
# =============================================================================


class HistoryEntry(CamelModel):
    id: int
    month: str  # YYYY-MM
    locked_at: str
    locked_by: str | None
    xero_invoice_ids: list[str]
    invoice_metadata: list[InvoiceMetadataResponse]
    total_billable_hours: float
    client_count: int

    @classmethod
    def from_entry(cls, entry: LockHistoryEntry) -> "HistoryEntry":
        lock = entry.lock
        return cls(
            id=lock.id,
            month=lock.month_key,
            locked_at=lock.locked_at,
            locked_by=lock.locked_by,
            xero_invoice_ids=list(lock.xero_invoice_ids),
            invoice_metadata=[
                InvoiceMetadataResponse.from_metadata(item) for item in lock.invoice_metadata
            ],
            total_billable_hours=float(entry.total_billable_hours),
            client_count=entry.client_count,
        )


class DeleteLockResponse(CamelModel):
    success: bool
    message: str
    month: str


class RemoveInvoiceResponse(CamelModel):
    success: bool
    message: str
    lock_deleted: bool
    remaining_invoice_ids: list[str]


class InvoiceConfigBody(CamelModel):
    xero_invoice_status: str

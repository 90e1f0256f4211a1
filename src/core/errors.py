"""
Error taxonomy for the billing engine.

Every error carries a machine-readable code and an HTTP-equivalent status so the
API layer can render it without knowing the individual classes.
"""

from typing import Any

RECONCILIATION_WARNING = (
    "Invoices may already exist in Xero without a matching month lock. "
    "Verify the invoices in Xero manually before re-running generation."
)


class BillingError(Exception):
    """Base class for all errors surfaced by the billing engine."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])
        self.created_invoices: list[Any] = []

    def record_created_invoices(self, created: list[Any]) -> None:
        """Attach metadata of invoices that were created remotely before the failure."""
        self.created_invoices = list(created)
        for invoice in self.created_invoices:
            self.details.append(
                f"Invoice {invoice.xero_invoice_id} already created in Xero for "
                f"{invoice.client_name} (client {invoice.client_id})"
            )

    @property
    def reconciliation_required(self) -> bool:
        return bool(self.created_invoices)


class ValidationError(BillingError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        details: list[str] | None = None,
        ticket_ids: list[int] | None = None,
    ):
        super().__init__(message, details)
        self.ticket_ids = list(ticket_ids or [])


class NotFoundError(BillingError):
    code = "NOT_FOUND"
    status_code = 404


class InvoiceLockError(BillingError):
    code = "INVOICE_LOCKED"
    status_code = 409


class XeroConnectionError(BillingError):
    code = "XERO_NOT_CONNECTED"
    status_code = 400


class XeroSetupError(BillingError):
    code = "XERO_SETUP_REQUIRED"
    status_code = 400


class XeroApiError(BillingError):
    """
    Remote call to Xero failed.

    kind is one of "rate_limit", "auth", "validation" or "api" (opaque failure,
    timeout or network error).
    """

    KIND_CODES = {
        "rate_limit": ("XERO_RATE_LIMITED", 429),
        "auth": ("XERO_AUTH_FAILED", 401),
        "validation": ("XERO_VALIDATION_FAILED", 422),
        "api": ("XERO_API_ERROR", 502),
    }

    def __init__(
        self,
        message: str,
        kind: str = "api",
        details: list[str] | None = None,
        retry_after: int | None = None,
        remote_status: int | None = None,
    ):
        super().__init__(message, details)
        if kind not in self.KIND_CODES:
            raise ValueError(f"Unknown Xero error kind: {kind}")
        self.kind = kind
        self.code, self.status_code = self.KIND_CODES[kind]
        self.retry_after = retry_after
        self.remote_status = remote_status


class DatabaseError(BillingError):
    """
    Local persistence failed.

    When raised after remote submission succeeded, the message always carries the
    manual reconciliation warning.
    """

    code = "DATABASE_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: list[str] | None = None,
        reconciliation_required: bool = False,
    ):
        if reconciliation_required:
            message = f"{message}. {RECONCILIATION_WARNING}"
        super().__init__(message, details)
        self._reconciliation_required = reconciliation_required

    @property
    def reconciliation_required(self) -> bool:
        return self._reconciliation_required or bool(self.created_invoices)

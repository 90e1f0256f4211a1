"""SQLite request and audit logging for API."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from core.database import get_connection
from core.errors import BillingError

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RequestLog:
    """Captured request/response data for logging."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=_utc_now)
    endpoint: str = ""
    method: str = ""
    client_ip: str | None = None
    month: str | None = None
    status_code: int = 0
    error_code: str | None = None
    error_message: str | None = None
    processing_time_ms: int = 0
    clients_invoiced: int | None = None
    total_hours: float | None = None
    details: list[tuple[str, str]] = field(default_factory=list)  # (type, message)

    def record_error(self, exc: BillingError) -> None:
        self.status_code = exc.status_code
        self.error_code = exc.code
        self.error_message = exc.message
        for detail in exc.details:
            self.details.append(("error_detail", detail))
        for invoice in exc.created_invoices:
            self.details.append(("invoice_created", invoice.xero_invoice_id))


@dataclass
class AuditEntry:
    """Operator action on billing state."""

    operator: str
    action: str  # generate_invoices, delete_lock, remove_invoice, update_config
    timestamp: str = field(default_factory=_utc_now)
    month: str | None = None
    lock_id: int | None = None
    success: bool = False
    error_message: str | None = None


def log_request(log: RequestLog) -> None:
    """Write request log to SQLite database."""
    conn = get_connection()
    try:
        cursor = conn.cursor()

        # Insert main request record
        cursor.execute(
            """
            INSERT INTO api_requests (
                request_id, timestamp, endpoint, method, client_ip, month,
                status_code, error_code, error_message, processing_time_ms,
                clients_invoiced, total_hours
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                log.request_id,
                log.timestamp,
                log.endpoint,
                log.method,
                log.client_ip,
                log.month,
                log.status_code,
                log.error_code,
                log.error_message,
                log.processing_time_ms,
                log.clients_invoiced,
                log.total_hours,
            ),
        )

        # Insert detail records
        for detail_type, message in log.details:
            cursor.execute(
                """
                INSERT INTO api_request_details (request_id, detail_type, message)
                VALUES (?, ?, ?)
            """,
                (log.request_id, detail_type, message),
            )

        conn.commit()
    finally:
        conn.close()


def log_audit(entry: AuditEntry) -> None:
    """Write an audit entry to SQLite database."""
    conn = get_connection()
    try:
        conn.execute(
            """
            INSERT INTO audit_logs (
                timestamp, operator, action, month, lock_id, success, error_message
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
            (
                entry.timestamp,
                entry.operator,
                entry.action,
                entry.month,
                entry.lock_id,
                int(entry.success),
                entry.error_message,
            ),
        )
        conn.commit()
    finally:
        conn.close()


def write_logs(request_log: RequestLog, audit: AuditEntry | None = None) -> None:
    """Persist request and audit logs without ever failing the request."""
    try:
        log_request(request_log)
        if audit is not None:
            log_audit(audit)
    except Exception as e:
        logger.warning(f"Failed to write API logs for {request_log.endpoint}: {e}")

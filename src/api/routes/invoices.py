"""Invoice preview, generation, history and lock maintenance endpoints."""

import asyncio
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_operator, verify_api_key
from api.logging import AuditEntry, RequestLog, write_logs
from api.models.responses import (
    DeleteLockResponse,
    ErrorCodes,
    GenerateRequest,
    GenerationResponse,
    HistoryEntry,
    InvoiceConfigBody,
    PreviewResponse,
    RemoveInvoiceResponse,
)
from core.database import get_connection
from core.errors import BillingError
from services.email import send_reconciliation_email
from services.invoice_config import get_invoice_config, update_invoice_config
from services.invoices import InvoiceGenerator, build_preview, get_invoice_history
from services.lock_maintenance import delete_month_lock, remove_invoice_from_lock

router = APIRouter(prefix="/v1/invoices", dependencies=[Depends(verify_api_key)])


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _run_with_connection(func, *args, **kwargs):
    """Run a service call with a connection owned by the current thread."""
    conn = get_connection()
    try:
        return func(conn, *args, **kwargs)
    finally:
        conn.close()


async def run_service(func, *args, **kwargs):
    """Run blocking database/Xero work in the thread pool."""
    return await asyncio.to_thread(_run_with_connection, func, *args, **kwargs)


def _generate(conn, month: str, operator: str):
    return InvoiceGenerator(conn).generate(month, operator)


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


@router.get("/preview", response_model=PreviewResponse)
async def preview_invoices_endpoint(
    request: Request,
    month: Annotated[str, Query(description="Month to preview (YYYY-MM)")],
):
    """Billing preview for a month, grouped by client and ticket."""
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/invoices/preview",
        method="GET",
        client_ip=get_client_ip(request),
        month=month,
    )

    try:
        preview = await run_service(build_preview, month)
        request_log.status_code = 200
        request_log.total_hours = float(preview.total_billable_hours)
        return PreviewResponse.from_preview(preview)

    except BillingError as e:
        request_log.record_error(e)
        raise

    except Exception as e:
        request_log.status_code = 500
        request_log.error_code = ErrorCodes.INTERNAL_ERROR
        request_log.error_message = str(e)
        raise

    finally:
        request_log.processing_time_ms = _elapsed_ms(start_time)
        write_logs(request_log)


@router.post("/generate", response_model=GenerationResponse)
async def generate_invoices_endpoint(
    request: Request,
    body: GenerateRequest,
    operator: str = Depends(get_operator),
):
    """
    Create Xero invoices for a month and lock it.

    Generation is never retried. Failures after Xero created invoices report
    the created invoices and trigger a reconciliation email.
    """
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/invoices/generate",
        method="POST",
        client_ip=get_client_ip(request),
        month=body.month,
    )
    audit = AuditEntry(operator=operator, action="generate_invoices", month=body.month)

    try:
        result = await run_service(_generate, body.month, operator)

        request_log.status_code = 200
        request_log.clients_invoiced = result.clients_invoiced
        request_log.total_hours = float(result.total_billable_hours)
        for invoice_id in result.xero_invoice_ids:
            request_log.details.append(("invoice_created", invoice_id))
        for client_name in result.skipped_clients:
            request_log.details.append(("warning", f"Skipped {client_name}: no Xero customer id"))
        audit.success = True
        audit.lock_id = result.lock_id

        return GenerationResponse.from_result(result)

    except BillingError as e:
        request_log.record_error(e)
        audit.error_message = e.message
        if e.reconciliation_required:
            await send_reconciliation_email(body.month, e)
        raise

    except Exception as e:
        request_log.status_code = 500
        request_log.error_code = ErrorCodes.INTERNAL_ERROR
        request_log.error_message = str(e)
        audit.error_message = str(e)
        raise

    finally:
        request_log.processing_time_ms = _elapsed_ms(start_time)
        write_logs(request_log, audit)


@router.get("/history", response_model=list[HistoryEntry])
async def invoice_history_endpoint():
    """All locked months, most recent first."""
    history = await run_service(get_invoice_history)
    return [HistoryEntry.from_entry(entry) for entry in history]


@router.delete("/locks/{lock_id}", response_model=DeleteLockResponse)
async def delete_lock_endpoint(
    request: Request,
    lock_id: str,
    operator: str = Depends(get_operator),
):
    """Re-open a month for billing. Invoices already in Xero are not touched."""
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/invoices/locks/{lock_id}",
        method="DELETE",
        client_ip=get_client_ip(request),
    )
    audit = AuditEntry(operator=operator, action="delete_lock")

    try:
        lock = await run_service(delete_month_lock, lock_id, operator)
        request_log.status_code = 200
        request_log.month = lock.month_key
        audit.month = lock.month_key
        audit.lock_id = lock.id
        audit.success = True
        return DeleteLockResponse(
            success=True,
            message=f"Invoice lock for {lock.month_key} deleted. "
            "Void any existing invoices in Xero before generating again.",
            month=lock.month_key,
        )

    except BillingError as e:
        request_log.record_error(e)
        audit.error_message = e.message
        raise

    finally:
        request_log.processing_time_ms = _elapsed_ms(start_time)
        write_logs(request_log, audit)


@router.delete(
    "/locks/{lock_id}/invoices/{xero_invoice_id}",
    response_model=RemoveInvoiceResponse,
)
async def remove_invoice_endpoint(
    request: Request,
    lock_id: str,
    xero_invoice_id: str,
    operator: str = Depends(get_operator),
):
    """Remove one voided invoice from a month lock."""
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/invoices/locks/{lock_id}/invoices/{xero_invoice_id}",
        method="DELETE",
        client_ip=get_client_ip(request),
    )
    audit = AuditEntry(operator=operator, action="remove_invoice")

    try:
        removal = await run_service(remove_invoice_from_lock, lock_id, xero_invoice_id, operator)
        month = removal.month.strftime("%Y-%m")
        request_log.status_code = 200
        request_log.month = month
        audit.month = month
        audit.lock_id = removal.lock_id
        audit.success = True

        if removal.lock_deleted:
            message = f"Invoice {xero_invoice_id} removed; lock for {month} deleted"
        else:
            message = f"Invoice {xero_invoice_id} removed from lock for {month}"
        return RemoveInvoiceResponse(
            success=True,
            message=message,
            lock_deleted=removal.lock_deleted,
            remaining_invoice_ids=list(removal.remaining_invoice_ids),
        )

    except BillingError as e:
        request_log.record_error(e)
        audit.error_message = e.message
        raise

    finally:
        request_log.processing_time_ms = _elapsed_ms(start_time)
        write_logs(request_log, audit)


@router.get("/config", response_model=InvoiceConfigBody)
async def get_config_endpoint():
    config = await run_service(get_invoice_config)
    return InvoiceConfigBody(xero_invoice_status=config.xero_invoice_status)


@router.put("/config", response_model=InvoiceConfigBody)
async def update_config_endpoint(
    request: Request,
    body: InvoiceConfigBody,
    operator: str = Depends(get_operator),
):
    """Set whether generated invoices are created as DRAFT or AUTHORISED."""
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/invoices/config",
        method="PUT",
        client_ip=get_client_ip(request),
    )
    audit = AuditEntry(operator=operator, action="update_config")

    try:
        config = await run_service(update_invoice_config, body.xero_invoice_status)
        request_log.status_code = 200
        audit.success = True
        return InvoiceConfigBody(xero_invoice_status=config.xero_invoice_status)

    except BillingError as e:
        request_log.record_error(e)
        audit.error_message = e.message
        raise

    finally:
        request_log.processing_time_ms = _elapsed_ms(start_time)
        write_logs(request_log, audit)

"""API Pydantic models."""

from .responses import (
    DeleteLockResponse,
    ErrorCodes,
    ErrorResponse,
    GenerateRequest,
    GenerationResponse,
    HealthResponse,
    HistoryEntry,
    InvoiceConfigBody,
    PreviewResponse,
    RemoveInvoiceResponse,
)

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "ErrorCodes",
    "PreviewResponse",
    "GenerateRequest",
    "GenerationResponse",
    "HistoryEntry",
    "DeleteLockResponse",
    "RemoveInvoiceResponse",
    "InvoiceConfigBody",
]

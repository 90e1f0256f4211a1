"""Health check endpoint."""

import asyncio
import sqlite3
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.models.responses import HealthResponse
from core.config import API_VERSION
from core.database import get_connection

router = APIRouter()


def _check_database() -> bool:
    """Return whether a Xero connection exists. Raises sqlite3.Error if the database is unusable."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT COUNT(*) AS n FROM xero_connections").fetchone()
        return row["n"] > 0
    finally:
        conn.close()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns 200 if healthy, 503 if unhealthy.
    """
    timestamp = datetime.now(timezone.utc).isoformat()

    try:
        xero_connected = await asyncio.to_thread(_check_database)
    except sqlite3.Error as e:
        return JSONResponse(
            status_code=503,
            content=HealthResponse(
                status="unhealthy",
                version=API_VERSION,
                database_available=False,
                xero_connected=False,
                timestamp=timestamp,
                error=f"Database unavailable: {e}",
            ).model_dump(),
        )

    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        database_available=True,
        xero_connected=xero_connected,
        timestamp=timestamp,
    )

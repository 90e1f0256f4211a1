"""
Data models for the Xero connection and OAuth token sets.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: str
    expires_in: int  # seconds


@dataclass(frozen=True)
class XeroConnection:
    """Stored Xero connection with decrypted tokens."""

    id: int
    user_id: int
    organization_name: str | None
    organization_id: str  # Xero tenant id
    access_token: str
    refresh_token: str
    token_expires_at: datetime
    connected_at: str | None = None
    last_sync_at: str | None = None

"""
Xero connection store.

Exactly one connection is active at a time: the lowest id row. Tokens are
encrypted at rest and refreshed on demand before API use.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from core.config import XERO_TOKEN_REFRESH_MARGIN_SECONDS
from core.encryption import decrypt_token, encrypt_token
from core.errors import XeroConnectionError
from core.xero_client import XeroClient, refresh_token_set
from models.xero import TokenSet, XeroConnection

logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Xero is not connected. Please connect to Xero in Settings."


@dataclass(frozen=True)
class XeroSession:
    """Authenticated client bound to the tenant of the active connection."""

    client: XeroClient
    tenant_id: str


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def save_tokens(
    conn: sqlite3.Connection,
    user_id: int,
    access_token: str,
    refresh_token: str,
    token_expires_at: datetime,
    organization_name: str | None,
    organization_id: str,
) -> XeroConnection:
    """Save or replace the Xero connection for a user."""
    conn.execute(
        """
        INSERT INTO xero_connections (
            user_id, organization_name, organization_id,
            access_token, refresh_token, token_expires_at
        ) VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (user_id) DO UPDATE SET
            organization_name = excluded.organization_name,
            organization_id = excluded.organization_id,
            access_token = excluded.access_token,
            refresh_token = excluded.refresh_token,
            token_expires_at = excluded.token_expires_at,
            updated_at = CURRENT_TIMESTAMP
        """,
        (
            user_id,
            organization_name,
            organization_id,
            encrypt_token(access_token),
            encrypt_token(refresh_token),
            token_expires_at.isoformat(),
        ),
    )
    conn.commit()
    return get_active_connection(conn)


def get_active_connection(conn: sqlite3.Connection) -> XeroConnection | None:
    """
    The single active connection with decrypted tokens, or None.

    Raises:
        XeroConnectionError: If the stored tokens cannot be decrypted
    """
    row = conn.execute(
        """
        SELECT id, user_id, organization_name, organization_id, access_token,
               refresh_token, token_expires_at, connected_at, last_sync_at
        FROM xero_connections
        ORDER BY id ASC
        LIMIT 1
        """
    ).fetchone()
    if row is None:
        return None

    try:
        access_token = decrypt_token(row["access_token"])
        refresh_token = decrypt_token(row["refresh_token"])
    except ValueError as e:
        raise XeroConnectionError(
            "Stored Xero credentials could not be decrypted. Please reconnect to Xero in Settings.",
            details=[str(e)],
        ) from e

    return XeroConnection(
        id=row["id"],
        user_id=row["user_id"],
        organization_name=row["organization_name"],
        organization_id=row["organization_id"],
        access_token=access_token,
        refresh_token=refresh_token,
        token_expires_at=_parse_timestamp(row["token_expires_at"]),
        connected_at=row["connected_at"],
        last_sync_at=row["last_sync_at"],
    )


def update_tokens(
    conn: sqlite3.Connection,
    connection_id: int,
    token_set: TokenSet,
    now: datetime | None = None,
) -> datetime:
    """Store a refreshed token set. Returns the new expiry."""
    expires_at = (now or datetime.now(timezone.utc)) + timedelta(seconds=token_set.expires_in)
    conn.execute(
        """
        UPDATE xero_connections
        SET access_token = ?, refresh_token = ?, token_expires_at = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
        """,
        (
            encrypt_token(token_set.access_token),
            encrypt_token(token_set.refresh_token),
            expires_at.isoformat(),
            connection_id,
        ),
    )
    conn.commit()
    return expires_at


def disconnect(conn: sqlite3.Connection) -> bool:
    """Delete the connection. Returns False if there was none."""
    cursor = conn.execute("DELETE FROM xero_connections")
    conn.commit()
    return cursor.rowcount > 0


def get_authenticated_client(
    conn: sqlite3.Connection,
    now: datetime | None = None,
    refresh=None,
) -> XeroSession:
    """
    Build a client for the active connection, refreshing its token if needed.

    Raises:
        XeroConnectionError: If no connection exists
        XeroApiError: If the token refresh is rejected
    """
    connection = get_active_connection(conn)
    if connection is None:
        raise XeroConnectionError(NOT_CONNECTED_MESSAGE)

    now = now or datetime.now(timezone.utc)
    access_token = connection.access_token
    margin = timedelta(seconds=XERO_TOKEN_REFRESH_MARGIN_SECONDS)

    if connection.token_expires_at - now <= margin:
        logger.info(f"Refreshing Xero token for {connection.organization_name}")
        token_set = (refresh or refresh_token_set)(connection.refresh_token)
        update_tokens(conn, connection.id, token_set, now)
        access_token = token_set.access_token

    return XeroSession(
        client=XeroClient(access_token),
        tenant_id=connection.organization_id,
    )

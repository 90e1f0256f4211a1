"""
Xero accounting API client.

Thin wrapper over the Xero REST API covering what invoice generation needs:
catalog item lookup, invoice creation and OAuth token refresh. Every call is
bounded by XERO_TIMEOUT_SECONDS and never retried; failures are mapped to
XeroApiError with a kind the caller can act on.
"""

import logging
from typing import Any

import requests

from core import config
from core.errors import XeroApiError
from models.billing import InvoiceDraft
from models.xero import TokenSet

logger = logging.getLogger(__name__)


def _parse_retry_after(response: requests.Response) -> int:
    """Seconds to wait from the Retry-After header, falling back to the default."""
    value = response.headers.get("Retry-After", "")
    try:
        seconds = int(value)
    except ValueError:
        return config.XERO_DEFAULT_RETRY_AFTER_SECONDS
    return seconds if seconds > 0 else config.XERO_DEFAULT_RETRY_AFTER_SECONDS


def _validation_messages(body: Any) -> list[str]:
    """Collect validation messages from a Xero error body."""
    if not isinstance(body, dict):
        return []

    messages = []
    for element in body.get("Elements") or []:
        for error in element.get("ValidationErrors") or []:
            if error.get("Message"):
                messages.append(error["Message"])

    if not messages:
        for key in ("Detail", "Message"):
            if body.get(key):
                messages.append(str(body[key]))
                break
    return messages


def error_from_response(response: requests.Response) -> XeroApiError:
    """Map a failed Xero response to an XeroApiError."""
    status_code = response.status_code

    if status_code == 429:
        retry_after = _parse_retry_after(response)
        details = []
        problem = response.headers.get("X-Rate-Limit-Problem")
        if problem:
            details.append(f"Rate limit exceeded: {problem}")
        return XeroApiError(
            f"Xero API rate limit exceeded. Please try again in {retry_after} seconds.",
            kind="rate_limit",
            details=details,
            retry_after=retry_after,
            remote_status=status_code,
        )

    if status_code in (401, 403):
        return XeroApiError(
            "Xero authentication expired. Please reconnect in Settings.",
            kind="auth",
            remote_status=status_code,
        )

    try:
        body = response.json()
    except ValueError:
        body = None

    if status_code == 400:
        return XeroApiError(
            "Xero rejected the request",
            kind="validation",
            details=_validation_messages(body),
            remote_status=status_code,
        )

    return XeroApiError(
        f"Xero API request failed with status {status_code}",
        kind="api",
        details=_validation_messages(body),
        remote_status=status_code,
    )


class XeroClient:
    """Authenticated client for a single access token."""

    def __init__(
        self,
        access_token: str,
        api_base: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ):
        self.access_token = access_token
        self.api_base = (api_base or config.XERO_API_BASE).rstrip("/")
        self.timeout = timeout or config.XERO_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _get_headers(self, tenant_id: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Xero-Tenant-Id": tenant_id,
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, tenant_id: str, **kwargs) -> dict:
        url = f"{self.api_base}/{path.lstrip('/')}"

        try:
            response = self.session.request(
                method,
                url,
                headers=self._get_headers(tenant_id),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout as e:
            raise XeroApiError(
                f"Xero request timed out after {self.timeout} seconds", kind="api"
            ) from e
        except requests.RequestException as e:
            raise XeroApiError(f"Could not reach Xero: {e}", kind="api") from e

        if response.status_code >= 400:
            error = error_from_response(response)
            logger.warning(f"Xero {method} {path} failed: {error.code} ({response.status_code})")
            raise error

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise XeroApiError("Xero returned an invalid JSON response", kind="api") from e

    def verify_catalog_item(self, tenant_id: str, code: str) -> bool:
        """Check that an item with this code (or name) exists in the Xero catalog."""
        data = self._request("GET", "Items", tenant_id)
        for item in data.get("Items") or []:
            if item.get("Code") == code or item.get("Name") == code:
                return True
        return False

    def create_invoice(self, tenant_id: str, draft: InvoiceDraft) -> str:
        """
        Create one invoice in Xero.

        Returns:
            The Xero InvoiceID of the created invoice

        Raises:
            XeroApiError: If Xero rejects the invoice or the call fails
        """
        data = self._request(
            "POST",
            "Invoices",
            tenant_id,
            json={"Invoices": [draft.to_xero_payload()]},
        )

        invoices = data.get("Invoices") or []
        if not invoices:
            raise XeroApiError("Xero response contained no invoice", kind="api")

        invoice = invoices[0]
        errors = [
            error["Message"]
            for error in invoice.get("ValidationErrors") or []
            if error.get("Message")
        ]
        if invoice.get("HasErrors") or errors:
            raise XeroApiError(
                f"Xero rejected the invoice for {draft.client_name}",
                kind="validation",
                details=errors,
            )

        invoice_id = invoice.get("InvoiceID")
        if not invoice_id:
            raise XeroApiError("Xero response is missing the InvoiceID", kind="api")
        return invoice_id


def refresh_token_set(refresh_token: str, session: requests.Session | None = None) -> TokenSet:
    """
    Exchange a refresh token for a new token set.

    Raises:
        XeroApiError: auth kind if Xero rejects the refresh token
    """
    http = session or requests.Session()
    try:
        response = http.post(
            config.XERO_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            auth=(config.XERO_CLIENT_ID, config.XERO_CLIENT_SECRET),
            timeout=config.XERO_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise XeroApiError(f"Could not refresh Xero token: {e}", kind="api") from e

    if response.status_code in (400, 401):
        raise XeroApiError(
            "Xero refresh token was rejected. Please reconnect in Settings.",
            kind="auth",
            remote_status=response.status_code,
        )
    if response.status_code >= 400:
        raise error_from_response(response)

    body = response.json()
    return TokenSet(
        access_token=body["access_token"],
        refresh_token=body["refresh_token"],
        expires_in=int(body.get("expires_in", 1800)),
    )

"""Tests for the Xero API client using a fake HTTP session."""

from datetime import date
from decimal import Decimal

import pytest
import requests

from core.errors import XeroApiError
from core.xero_client import XeroClient, refresh_token_set
from models.billing import InvoiceDraft, InvoiceLineItem


class FakeResponse:
    def __init__(self, status_code=200, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        self.content = b"" if body is None else b"{}"

    def json(self):
        if self._body is None:
            raise ValueError("No JSON")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc:
            raise self.exc
        return self.response

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)


def make_draft():
    return InvoiceDraft(
        client_id=1,
        client_name="Acme Corp",
        xero_customer_id="xero-acme",
        invoice_date=date(2025, 9, 30),
        due_date=date(2025, 10, 31),
        line_items=(
            InvoiceLineItem("Ticket #1 - Fix VPN", Decimal("5"), "Consulting Services"),
        ),
        status="DRAFT",
        reference="September 2025 Services",
        billable_hours=Decimal("5"),
    )


def make_client(response=None, exc=None):
    session = FakeSession(response, exc)
    return XeroClient("token-abc", api_base="https://xero.test/api", timeout=5, session=session), session


class TestCreateInvoice:
    def test_returns_invoice_id_and_sends_payload(self):
        client, session = make_client(
            FakeResponse(200, {"Invoices": [{"InvoiceID": "inv-123", "HasErrors": False}]})
        )

        assert client.create_invoice("tenant-1", make_draft()) == "inv-123"

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == "https://xero.test/api/Invoices"
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Authorization"] == "Bearer token-abc"
        assert kwargs["headers"]["Xero-Tenant-Id"] == "tenant-1"
        (invoice,) = kwargs["json"]["Invoices"]
        assert invoice["Reference"] == "September 2025 Services"
        assert invoice["Contact"] == {"ContactID": "xero-acme"}

    def test_rate_limit_uses_retry_after_header(self):
        client, _ = make_client(
            FakeResponse(429, headers={"Retry-After": "17", "X-Rate-Limit-Problem": "minute"})
        )

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        error = exc_info.value
        assert error.kind == "rate_limit"
        assert error.status_code == 429
        assert error.retry_after == 17
        assert error.details == ["Rate limit exceeded: minute"]

    def test_rate_limit_defaults_to_sixty_seconds(self):
        client, _ = make_client(FakeResponse(429))

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        assert exc_info.value.retry_after == 60

    def test_auth_failure(self):
        client, _ = make_client(FakeResponse(401))

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        assert exc_info.value.code == "XERO_AUTH_FAILED"
        assert exc_info.value.status_code == 401

    def test_validation_failure_collects_messages(self):
        body = {
            "Elements": [
                {"ValidationErrors": [{"Message": "Contact is archived"}]},
            ]
        }
        client, _ = make_client(FakeResponse(400, body))

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        assert exc_info.value.kind == "validation"
        assert exc_info.value.details == ["Contact is archived"]

    def test_invoice_level_validation_errors(self):
        body = {
            "Invoices": [
                {"HasErrors": True, "ValidationErrors": [{"Message": "Item code unknown"}]}
            ]
        }
        client, _ = make_client(FakeResponse(200, body))

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        assert exc_info.value.code == "XERO_VALIDATION_FAILED"
        assert exc_info.value.details == ["Item code unknown"]

    def test_server_error_is_opaque_api_error(self):
        client, _ = make_client(FakeResponse(503))

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        assert exc_info.value.code == "XERO_API_ERROR"
        assert exc_info.value.remote_status == 503

    def test_timeout(self):
        client, _ = make_client(exc=requests.Timeout("read timed out"))

        with pytest.raises(XeroApiError) as exc_info:
            client.create_invoice("tenant-1", make_draft())

        assert exc_info.value.kind == "api"
        assert "timed out" in exc_info.value.message


class TestVerifyCatalogItem:
    def test_matches_code_or_name(self):
        client, session = make_client(
            FakeResponse(200, {"Items": [{"Code": "CONSULT", "Name": "Consulting Services"}]})
        )

        assert client.verify_catalog_item("tenant-1", "Consulting Services") is True
        assert client.verify_catalog_item("tenant-1", "CONSULT") is True
        assert client.verify_catalog_item("tenant-1", "Hardware") is False
        assert session.calls[0][1] == "https://xero.test/api/Items"


class TestRefreshTokenSet:
    def test_returns_token_set(self):
        session = FakeSession(
            FakeResponse(
                200,
                {"access_token": "new-access", "refresh_token": "new-refresh", "expires_in": 1800},
            )
        )

        token_set = refresh_token_set("old-refresh", session=session)

        assert token_set.access_token == "new-access"
        assert token_set.refresh_token == "new-refresh"
        assert token_set.expires_in == 1800
        assert session.calls[0][2]["data"]["refresh_token"] == "old-refresh"

    def test_rejected_refresh_token(self):
        session = FakeSession(FakeResponse(400, {"error": "invalid_grant"}))

        with pytest.raises(XeroApiError) as exc_info:
            refresh_token_set("old-refresh", session=session)

        assert exc_info.value.kind == "auth"

"""Tests for the REST API using FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

import api.routes.invoices as invoice_routes
import services.invoices as invoices_module
from api.main import app
from core import config
from core.errors import XeroApiError
from fixtures.billing_data import add_time_entry, create_client, create_ticket, seed_single_client_month
from fixtures.fake_xero import FakeXeroClient
from services.locks import create_lock, is_month_locked

API_KEY = "test-api-key"
HEADERS = {"X-API-Key": API_KEY, "X-Operator": "alice"}

client = TestClient(app)


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setattr(config, "BILLING_API_KEY", API_KEY)


@pytest.fixture
def use_fake_xero(monkeypatch):
    def install(fake):
        monkeypatch.setattr(invoices_module, "get_authenticated_client", fake.session_factory)
        return fake

    return install


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    async def fake_send(month, error):
        sent.append((month, error))
        return True

    monkeypatch.setattr(invoice_routes, "send_reconciliation_email", fake_send)
    return sent


class TestHealth:
    def test_healthy(self, db_path):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database_available"] is True
        assert data["xero_connected"] is False

    def test_database_without_schema_is_unhealthy(self):
        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestAuthentication:
    def test_wrong_api_key(self, db_path):
        response = client.get(
            "/v1/invoices/preview", params={"month": "2025-09"}, headers={"X-API-Key": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    def test_server_without_api_key(self, db_path, monkeypatch):
        monkeypatch.setattr(config, "BILLING_API_KEY", "")

        response = client.get("/v1/invoices/preview", params={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 500


class TestPreview:
    def test_preview(self, conn):
        seed_single_client_month(conn)

        response = client.get("/v1/invoices/preview", params={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["month"] == "2025-09"
        assert data["isLocked"] is False
        assert data["totalBillableHours"] == 5.0
        (client_data,) = data["clients"]
        assert client_data["clientName"] == "Acme Corp"
        assert client_data["subtotalHours"] == 5.0
        assert client_data["tickets"][0]["description"] == "Server migration"
        assert len(client_data["tickets"][0]["timeEntries"]) == 2

    def test_invalid_month(self, db_path):
        response = client.get("/v1/invoices/preview", params={"month": "Sept"}, headers=HEADERS)

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["error"] == "Invalid month format. Expected YYYY-MM or YYYY-MM-DD"

    def test_request_is_logged(self, conn):
        client.get("/v1/invoices/preview", params={"month": "2025-09"}, headers=HEADERS)

        row = conn.execute("SELECT endpoint, status_code, month FROM api_requests").fetchone()
        assert row["endpoint"] == "/v1/invoices/preview"
        assert row["status_code"] == 200
        assert row["month"] == "2025-09"


class TestGenerate:
    def test_success(self, conn, use_fake_xero):
        seed_single_client_month(conn)
        use_fake_xero(FakeXeroClient())

        response = client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["clientsInvoiced"] == 1
        assert data["xeroInvoiceIds"] == ["inv-1"]
        assert data["totalBillableHours"] == 5.0
        assert data["message"] == "Successfully generated 1 invoices for September 2025"
        assert is_month_locked(conn, "2025-09")

        audit = conn.execute("SELECT operator, action, success FROM audit_logs").fetchone()
        assert audit["operator"] == "alice"
        assert audit["action"] == "generate_invoices"
        assert audit["success"] == 1

    def test_locked_month_conflict(self, conn, use_fake_xero):
        seed_single_client_month(conn)
        create_lock(conn, "2025-09", ["inv-old"])
        conn.commit()
        fake = use_fake_xero(FakeXeroClient())

        response = client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 409
        assert response.json()["code"] == "INVOICE_LOCKED"
        assert fake.attempts == 0

    def test_missing_descriptions(self, conn, use_fake_xero):
        client_id = create_client(conn)
        add_time_entry(conn, create_ticket(conn, client_id, description=None), "2025-09-01", 1)
        use_fake_xero(FakeXeroClient())

        response = client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 400
        assert "Missing descriptions for tickets: #1" in response.json()["error"]

    def test_rate_limit_sets_retry_after(self, conn, use_fake_xero):
        seed_single_client_month(conn)
        error = XeroApiError("Xero API rate limit exceeded", kind="rate_limit", retry_after=60)
        use_fake_xero(FakeXeroClient(fail_at=0, error=error))

        response = client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.json()["retryAfter"] == 60
        assert response.json()["reconciliationRequired"] is False

    def test_partial_failure_requests_reconciliation(self, conn, use_fake_xero, sent_emails):
        for name in ("Acme Corp", "Beta LLC"):
            client_id = create_client(conn, name, f"xero-{name[:4].lower()}")
            add_time_entry(conn, create_ticket(conn, client_id), "2025-09-10", 2)
        use_fake_xero(FakeXeroClient(fail_at=1))

        response = client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 502
        data = response.json()
        assert data["code"] == "XERO_API_ERROR"
        assert data["reconciliationRequired"] is True
        assert [item["xeroInvoiceId"] for item in data["createdInvoices"]] == ["inv-1"]
        assert not is_month_locked(conn, "2025-09")
        assert [month for month, _ in sent_emails] == ["2025-09"]

        details = conn.execute(
            "SELECT message FROM api_request_details WHERE detail_type = 'invoice_created'"
        ).fetchall()
        assert [row["message"] for row in details] == ["inv-1"]

    def test_no_email_without_created_invoices(self, conn, use_fake_xero, sent_emails):
        seed_single_client_month(conn)
        use_fake_xero(FakeXeroClient(fail_at=0))

        response = client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        assert response.status_code == 502
        assert sent_emails == []


class TestHistoryAndLocks:
    def test_history(self, conn, use_fake_xero):
        seed_single_client_month(conn)
        use_fake_xero(FakeXeroClient())
        client.post("/v1/invoices/generate", json={"month": "2025-09"}, headers=HEADERS)

        response = client.get("/v1/invoices/history", headers=HEADERS)

        assert response.status_code == 200
        (entry,) = response.json()
        assert entry["month"] == "2025-09"
        assert entry["lockedBy"] == "alice"
        assert entry["totalBillableHours"] == 5.0
        assert entry["clientCount"] == 1
        assert entry["invoiceMetadata"][0]["xeroInvoiceId"] == "inv-1"

    def test_delete_lock(self, conn):
        lock = create_lock(conn, "2025-09", ["inv-1"])
        conn.commit()

        response = client.delete(f"/v1/invoices/locks/{lock.id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["month"] == "2025-09"
        assert not is_month_locked(conn, "2025-09")

    def test_delete_lock_invalid_id(self, db_path):
        response = client.delete("/v1/invoices/locks/abc", headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid invoice ID"

    def test_delete_missing_lock(self, db_path):
        response = client.delete("/v1/invoices/locks/42", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_remove_invoice(self, conn):
        lock = create_lock(conn, "2025-09", ["inv-1", "inv-2"])
        conn.commit()

        response = client.delete(f"/v1/invoices/locks/{lock.id}/invoices/inv-1", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["lockDeleted"] is False
        assert data["remainingInvoiceIds"] == ["inv-2"]

    def test_remove_last_invoice_deletes_lock(self, conn):
        lock = create_lock(conn, "2025-09", ["inv-1"])
        conn.commit()

        response = client.delete(f"/v1/invoices/locks/{lock.id}/invoices/inv-1", headers=HEADERS)

        assert response.json()["lockDeleted"] is True
        assert not is_month_locked(conn, "2025-09")


class TestConfig:
    def test_get_default(self, db_path):
        response = client.get("/v1/invoices/config", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"xeroInvoiceStatus": "DRAFT"}

    def test_update(self, db_path):
        response = client.put(
            "/v1/invoices/config", json={"xeroInvoiceStatus": "AUTHORISED"}, headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json() == {"xeroInvoiceStatus": "AUTHORISED"}
        assert client.get("/v1/invoices/config", headers=HEADERS).json() == {
            "xeroInvoiceStatus": "AUTHORISED"
        }

    def test_update_invalid_status(self, db_path):
        response = client.put(
            "/v1/invoices/config", json={"xeroInvoiceStatus": "PAID"}, headers=HEADERS
        )

        assert response.status_code == 400

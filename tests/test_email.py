"""Tests for reconciliation alert emails."""

import asyncio
from decimal import Decimal

import services.email as email_module
from core import config
from core.errors import XeroApiError
from models.billing import InvoiceMetadata
from services.email import format_reconciliation_email, send_reconciliation_email


def partial_failure():
    error = XeroApiError("Xero API request failed with status 500", kind="api")
    error.record_created_invoices(
        [
            InvoiceMetadata(
                client_id=3,
                client_name="Acme Corp",
                xero_invoice_id="inv-1",
                hours=Decimal("5"),
                line_item_count=2,
            )
        ]
    )
    return error


class FakeSendMail:
    def __init__(self, sent):
        self.sent = sent

    async def post(self, body):
        self.sent.append(body)


class FakeGraph:
    def __init__(self):
        self.sent = []
        self.senders = []
        self.users = self

    def by_user_id(self, user_id):
        self.senders.append(user_id)
        return type("UserRequest", (), {"send_mail": FakeSendMail(self.sent)})()


def test_body_lists_created_invoices():
    body = format_reconciliation_email("2025-09", partial_failure())

    assert "September 2025" in body
    assert "XERO_API_ERROR" in body
    assert "Acme Corp (client 3): inv-1, 5 hours, 2 line items" in body


def test_disabled_without_recipient():
    assert asyncio.run(send_reconciliation_email("2025-09", partial_failure())) is False


def test_sends_through_graph(monkeypatch):
    graph = FakeGraph()
    monkeypatch.setattr(config, "RECONCILIATION_EMAIL", "billing@example.com")
    monkeypatch.setattr(config, "FROM_EMAIL", "noreply@example.com")
    monkeypatch.setattr(email_module, "get_graph_client", lambda: graph)

    assert asyncio.run(send_reconciliation_email("2025-09", partial_failure())) is True

    assert graph.senders == ["noreply@example.com"]
    (request_body,) = graph.sent
    assert "September 2025" in request_body.message.subject
    assert request_body.message.to_recipients[0].email_address.address == "billing@example.com"


def test_send_failure_returns_false(monkeypatch):
    def broken_client():
        raise ValueError("MS Graph credentials not configured")

    monkeypatch.setattr(config, "RECONCILIATION_EMAIL", "billing@example.com")
    monkeypatch.setattr(config, "FROM_EMAIL", "noreply@example.com")
    monkeypatch.setattr(email_module, "get_graph_client", broken_client)

    assert asyncio.run(send_reconciliation_email("2025-09", partial_failure())) is False

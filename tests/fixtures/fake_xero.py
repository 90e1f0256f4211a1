"""In-memory stand-in for the Xero client used by generation tests."""

from core.errors import XeroApiError
from services.xero_connections import XeroSession

TENANT_ID = "tenant-1"


class FakeXeroClient:
    """
    Records submitted drafts and returns sequential invoice ids.

    fail_at makes the submission with that index raise error instead.
    on_create runs after each accepted submission.
    """

    def __init__(self, items=("Consulting Services",), fail_at=None, error=None, on_create=None):
        self.items = list(items)
        self.fail_at = fail_at
        self.error = error
        self.on_create = on_create
        self.submitted = []
        self.attempts = 0

    def verify_catalog_item(self, tenant_id, code):
        return code in self.items

    def create_invoice(self, tenant_id, draft):
        index = self.attempts
        self.attempts += 1
        if self.fail_at is not None and index == self.fail_at:
            raise self.error or XeroApiError(
                "Xero API request failed with status 500", kind="api", remote_status=500
            )

        self.submitted.append(draft)
        invoice_id = f"inv-{len(self.submitted)}"
        if self.on_create is not None:
            self.on_create(draft, invoice_id)
        return invoice_id

    def session_factory(self, conn):
        return XeroSession(client=self, tenant_id=TENANT_ID)

"""
Reconciliation alert emails.

Sent when invoice generation fails after Xero already created some invoices,
so an operator checks Xero before anything is re-run.
"""

from msgraph.generated.models.body_type import BodyType
from msgraph.generated.models.email_address import EmailAddress
from msgraph.generated.models.item_body import ItemBody
from msgraph.generated.models.message import Message
from msgraph.generated.models.recipient import Recipient
from msgraph.generated.users.item.send_mail.send_mail_post_request_body import (
    SendMailPostRequestBody,
)

from core import config
from core.errors import BillingError
from core.graph_client import get_graph_client
from core.months import month_label


def format_reconciliation_email(month: str, error: BillingError) -> str:
    """Plain text body listing the failure and every invoice Xero already has."""
    lines = [
        f"Invoice generation for {month_label(month)} failed after invoices were created in Xero.",
        "",
        f"Error: {error.code}",
        error.message,
        "",
    ]

    if error.created_invoices:
        lines.append("Invoices created in Xero without a month lock:")
        for invoice in error.created_invoices:
            lines.append(
                f"  - {invoice.client_name} (client {invoice.client_id}): "
                f"{invoice.xero_invoice_id}, {invoice.hours} hours, "
                f"{invoice.line_item_count} line items"
            )
    else:
        lines.append("The created invoice ids are unknown; check Xero for this month.")

    lines.extend(
        [
            "",
            "Void or delete these invoices in Xero, or record them manually, "
            "before generating invoices for this month again.",
        ]
    )
    return "\n".join(lines)


async def send_reconciliation_email(month: str, error: BillingError) -> bool:
    """
    Email the reconciliation alert. Returns False if alerts are disabled or sending failed.

    Never raises: the original generation error is what the caller reports.
    """
    if not config.RECONCILIATION_EMAIL or not config.FROM_EMAIL:
        return False

    message = Message(
        subject=f"Invoice generation needs reconciliation - {month_label(month)}",
        body=ItemBody(
            content_type=BodyType.Text,
            content=format_reconciliation_email(month, error),
        ),
        to_recipients=[
            Recipient(email_address=EmailAddress(address=config.RECONCILIATION_EMAIL))
        ],
    )
    request_body = SendMailPostRequestBody(message=message, save_to_sent_items=True)

    try:
        graph = get_graph_client()
        await graph.users.by_user_id(config.FROM_EMAIL).send_mail.post(request_body)
    except Exception as e:
        print(f"Failed to send reconciliation email: {e}")
        return False

    print(f"Sent reconciliation email to {config.RECONCILIATION_EMAIL}")
    return True

"""
Invoice line building.

Turns a billing preview into one Xero invoice draft per client.

Line item policy per ticket:
- billable hours only: one line at the catalog item's default rate
- non-billable hours only: one line with unit amount 0
- both: a billable line and a zero-rated non-billable line

Invoice date is the last day of the billed month. Due date is the last day of
the month in which generation runs, not of the billed month.
"""

import logging
from datetime import date
from decimal import Decimal

from core.config import XERO_ITEM_CODE
from core.months import last_day_of_current_month, last_day_of_month, month_label
from models.billing import (
    BillingPreview,
    ClientBillingGroup,
    InvoiceConfig,
    InvoiceDraft,
    InvoiceLineItem,
    TicketBillingGroup,
)

logger = logging.getLogger(__name__)

ZERO_RATE = Decimal("0")


def format_ticket_label(ticket: TicketBillingGroup) -> str:
    return f"Ticket #{ticket.ticket_id} - {ticket.description}"


def build_ticket_line_items(
    ticket: TicketBillingGroup, item_code: str = XERO_ITEM_CODE
) -> list[InvoiceLineItem]:
    """Line items for one ticket following the billable/non-billable split."""
    label = format_ticket_label(ticket)
    has_billable = ticket.billable_hours > 0
    has_non_billable = ticket.non_billable_hours > 0

    if has_billable and has_non_billable:
        return [
            InvoiceLineItem(
                description=f"{label} (Billable)",
                quantity=ticket.billable_hours,
                item_code=item_code,
            ),
            InvoiceLineItem(
                description=f"{label} (Non-billable)",
                quantity=ticket.non_billable_hours,
                item_code=item_code,
                unit_amount=ZERO_RATE,
            ),
        ]
    if has_billable:
        return [
            InvoiceLineItem(description=label, quantity=ticket.billable_hours, item_code=item_code)
        ]
    if has_non_billable:
        return [
            InvoiceLineItem(
                description=label,
                quantity=ticket.non_billable_hours,
                item_code=item_code,
                unit_amount=ZERO_RATE,
            )
        ]
    return []


def build_client_draft(
    client: ClientBillingGroup,
    month: str,
    config: InvoiceConfig,
    item_code: str = XERO_ITEM_CODE,
    today: date | None = None,
) -> InvoiceDraft | None:
    """Draft for one client, or None if the client cannot or need not be invoiced."""
    if not client.xero_customer_id:
        logger.warning(
            f"Skipping client {client.client_id} ({client.client_name}): no Xero customer id mapped"
        )
        return None

    line_items = []
    for ticket in client.tickets:
        line_items.extend(build_ticket_line_items(ticket, item_code))

    if not line_items:
        return None

    return InvoiceDraft(
        client_id=client.client_id,
        client_name=client.client_name,
        xero_customer_id=client.xero_customer_id,
        invoice_date=last_day_of_month(month),
        due_date=last_day_of_current_month(today),
        line_items=tuple(line_items),
        status=config.xero_invoice_status,
        reference=f"{month_label(month)} Services",
        billable_hours=client.subtotal_hours,
    )


def build_invoice_drafts(
    preview: BillingPreview,
    config: InvoiceConfig,
    item_code: str = XERO_ITEM_CODE,
    today: date | None = None,
) -> list[InvoiceDraft]:
    """
    Build one draft per invoiceable client, in preview order.

    Clients without a Xero customer id, or without any line items, are left out.
    """
    drafts = []
    for client in preview.clients:
        draft = build_client_draft(client, preview.month, config, item_code, today)
        if draft is not None:
            drafts.append(draft)
    return drafts

#!/usr/bin/env python3
"""
Generate Xero invoices for a billing month and lock it.

Uses the active Xero connection. With --preview, prints the month's billing
breakdown without contacting Xero.

Usage:
    uv run python src/scripts/generate_invoices.py <YYYY-MM> [--preview]

Example:
    uv run python src/scripts/generate_invoices.py 2025-09 --preview
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.database import get_connection
from core.errors import BillingError
from services.invoices import build_preview, generate_invoices


def print_preview(preview):
    status = "LOCKED" if preview.is_locked else "open"
    print(f"\nBilling preview for {preview.month} ({status})")
    print("=" * 60)

    for client in preview.clients:
        xero_id = client.xero_customer_id or "no Xero customer id"
        print(f"\n{client.client_name} [{xero_id}]: {client.subtotal_hours} billable hours")
        for ticket in client.tickets:
            description = ticket.description or "(missing description)"
            print(
                f"  #{ticket.ticket_id} {description}: "
                f"{ticket.billable_hours} billable, {ticket.non_billable_hours} non-billable"
            )

    print(f"\nTotal billable hours: {preview.total_billable_hours}")


def main():
    parser = argparse.ArgumentParser(
        description="Generate Xero invoices for a month and lock it"
    )
    parser.add_argument("month", help="Billing month (YYYY-MM)")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Show the billing breakdown without creating invoices",
    )
    parser.add_argument(
        "--operator",
        default="cli",
        help="Name recorded on the month lock",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    conn = get_connection()
    try:
        if args.preview:
            print_preview(build_preview(conn, args.month))
            return

        result = generate_invoices(conn, args.month, operator=args.operator)
        print(f"\n{result.message}")
        print(f"Status: {result.invoice_status}")
        print(f"Billable hours: {result.total_billable_hours}")
        for invoice_id in result.xero_invoice_ids:
            print(f"  {invoice_id}")
        for client_name in result.skipped_clients:
            print(f"Skipped (no Xero customer id): {client_name}")
    except BillingError as e:
        print(f"\nError [{e.code}]: {e.message}")
        for detail in e.details:
            print(f"  - {detail}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Inspect and maintain month locks.

Deleting a lock or removing an invoice does not touch Xero: void the invoices
there first.

Usage:
    uv run python src/scripts/invoice_locks.py list
    uv run python src/scripts/invoice_locks.py delete <lock_id>
    uv run python src/scripts/invoice_locks.py remove-invoice <lock_id> <xero_invoice_id>
"""

import argparse
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.database import get_connection
from core.errors import BillingError
from services.invoices import get_invoice_history
from services.lock_maintenance import delete_month_lock, remove_invoice_from_lock


def list_locks(conn):
    history = get_invoice_history(conn)
    if not history:
        print("No locked months")
        return

    for entry in history:
        lock = entry.lock
        print(
            f"[{lock.id}] {lock.month_key}  locked {lock.locked_at} by {lock.locked_by or '-'}  "
            f"{entry.client_count} clients, {entry.total_billable_hours} billable hours"
        )
        for item in lock.invoice_metadata:
            print(f"    {item.xero_invoice_id}  {item.client_name}  {item.hours}h")


def main():
    parser = argparse.ArgumentParser(description="Inspect and maintain month locks")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List locked months")

    delete_parser = subparsers.add_parser("delete", help="Delete a month lock")
    delete_parser.add_argument("lock_id")

    remove_parser = subparsers.add_parser(
        "remove-invoice", help="Remove one invoice from a month lock"
    )
    remove_parser.add_argument("lock_id")
    remove_parser.add_argument("xero_invoice_id")

    parser.add_argument("--operator", default="cli", help="Name recorded in the logs")

    args = parser.parse_args()

    conn = get_connection()
    try:
        if args.command == "list":
            list_locks(conn)
        elif args.command == "delete":
            lock = delete_month_lock(conn, args.lock_id, operator=args.operator)
            print(f"Deleted lock for {lock.month_key}")
            if lock.xero_invoice_ids:
                print("Invoices still in Xero:")
                for invoice_id in lock.xero_invoice_ids:
                    print(f"  {invoice_id}")
        else:
            removal = remove_invoice_from_lock(
                conn, args.lock_id, args.xero_invoice_id, operator=args.operator
            )
            print(f"Removed invoice {removal.xero_invoice_id}")
            if removal.lock_deleted:
                print(f"Lock for {removal.month:%Y-%m} deleted (no invoices left)")
            else:
                print(f"{len(removal.remaining_invoice_ids)} invoices remain")
    except BillingError as e:
        print(f"\nError [{e.code}]: {e.message}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()

"""
Time entry aggregation for billing previews.

Reads a month of time entries joined with ticket, client and contact data and
groups the flat rows into a client -> ticket -> time entry tree.
"""

import sqlite3
from collections.abc import Iterable
from decimal import Decimal

from core.months import month_bounds
from models.billing import (
    ZERO_HOURS,
    ClientBillingGroup,
    TicketBillingGroup,
    TimeEntry,
    TimeEntryRow,
)

TIME_ENTRY_QUERY = """
    SELECT
        te.id AS time_entry_id,
        te.work_date,
        te.duration_hours,
        te.billable,
        t.id AS ticket_id,
        t.description,
        t.client_id,
        c.company_name AS client_name,
        c.xero_customer_id,
        t.contact_id,
        ct.name AS contact_name,
        CASE WHEN t.description IS NULL OR TRIM(t.description) = '' THEN 1 ELSE 0 END
            AS missing_description
    FROM time_entries te
    JOIN tickets t ON te.ticket_id = t.id
    JOIN clients c ON t.client_id = c.id
    LEFT JOIN contacts ct ON t.contact_id = ct.id
    WHERE
        te.work_date >= ?
        AND te.work_date < ?
        AND te.deleted_at IS NULL
    ORDER BY c.company_name, t.id, te.work_date
"""


def fetch_time_entry_rows(conn: sqlite3.Connection, month) -> list[TimeEntryRow]:
    """Load the month's non-deleted time entries, ordered by client name, ticket, work date."""
    start, end = month_bounds(month)
    cursor = conn.execute(TIME_ENTRY_QUERY, (start.isoformat(), end.isoformat()))
    return [TimeEntryRow.from_db_row(row) for row in cursor.fetchall()]


def aggregate_time_entries(rows: Iterable[TimeEntryRow]) -> tuple[ClientBillingGroup, ...]:
    """
    Group flat time entry rows into clients with nested tickets.

    A ticket is billable if any of its entries is billable. A client's subtotal
    counts billable hours only.
    """
    clients: dict[int, dict] = {}
    tickets: dict[tuple[int, int], dict] = {}

    for row in rows:
        client = clients.get(row.client_id)
        if client is None:
            client = {
                "client_id": row.client_id,
                "client_name": row.client_name,
                "xero_customer_id": row.xero_customer_id,
                "ticket_keys": [],
            }
            clients[row.client_id] = client

        ticket_key = (row.client_id, row.ticket_id)
        ticket = tickets.get(ticket_key)
        if ticket is None:
            ticket = {
                "ticket_id": row.ticket_id,
                "description": row.description,
                "contact_id": row.contact_id,
                "contact_name": row.contact_name,
                "billable_hours": ZERO_HOURS,
                "non_billable_hours": ZERO_HOURS,
                "missing_description": row.missing_description,
                "time_entries": [],
            }
            tickets[ticket_key] = ticket
            client["ticket_keys"].append(ticket_key)

        ticket["time_entries"].append(
            TimeEntry(
                id=row.time_entry_id,
                work_date=row.work_date,
                duration_hours=row.duration_hours,
                billable=row.billable,
            )
        )
        if row.billable:
            ticket["billable_hours"] += row.duration_hours
        else:
            ticket["non_billable_hours"] += row.duration_hours

    result = []
    for client in clients.values():
        ticket_groups = tuple(_freeze_ticket(tickets[key]) for key in client["ticket_keys"])
        result.append(
            ClientBillingGroup(
                client_id=client["client_id"],
                client_name=client["client_name"],
                xero_customer_id=client["xero_customer_id"],
                subtotal_hours=sum((t.billable_hours for t in ticket_groups), ZERO_HOURS),
                tickets=ticket_groups,
            )
        )
    return tuple(result)


def _freeze_ticket(ticket: dict) -> TicketBillingGroup:
    billable_hours = ticket["billable_hours"]
    non_billable_hours = ticket["non_billable_hours"]
    return TicketBillingGroup(
        ticket_id=ticket["ticket_id"],
        description=ticket["description"],
        contact_id=ticket["contact_id"],
        contact_name=ticket["contact_name"],
        total_hours=billable_hours + non_billable_hours,
        billable_hours=billable_hours,
        non_billable_hours=non_billable_hours,
        billable=billable_hours > 0,
        missing_description=ticket["missing_description"],
        time_entries=tuple(ticket["time_entries"]),
    )


def calculate_total_billable(clients: Iterable[ClientBillingGroup]) -> Decimal:
    """Total billable hours across all clients."""
    return sum((client.subtotal_hours for client in clients), ZERO_HOURS)


def find_missing_descriptions(clients: Iterable[ClientBillingGroup]) -> list[int]:
    """Ids of every ticket without a description, in preview order."""
    return [
        ticket.ticket_id
        for client in clients
        for ticket in client.tickets
        if ticket.missing_description
    ]

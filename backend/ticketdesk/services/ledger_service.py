# Overview: Posting and retraction of accounting ledger entries on behalf of the ticketing core.

"""
Accounting ledger contract (as used by the ticketing core)

- One income entry per settled distribution with revenue > 0; none for zero revenue.
- Entries are written inside the same DB transaction as the settlement they record.
- Entries are matched for retraction by (reference_type, reference_id), never by
  guessing amounts or parsing descriptions.
- The core never edits entries it did not create.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import AccountingTransaction

REFERENCE_DISTRIBUTION = "ticket_distribution"


def ticket_sales_category() -> str:
    return current_app.config.get("TICKET_SALES_CATEGORY", "Ticket Sales")


def post_entry(
    *,
    amount_cents: int,
    transaction_date: date,
    description: str,
    reference_type: str,
    reference_id: int,
    category: str | None = None,
    transaction_type: str = "income",
    user_id: int | None = None,
    event_session_id: int | None = None,
) -> AccountingTransaction:
    """Append a ledger entry. Flushes, never commits."""
    entry = AccountingTransaction(
        transaction_type=transaction_type,
        category=category or ticket_sales_category(),
        description=description,
        amount_cents=amount_cents,
        transaction_date=transaction_date,
        user_id=user_id,
        event_session_id=event_session_id,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def retract_entries(*, reference_type: str, reference_id: int) -> int:
    """Delete every entry created for the given reference. Returns the number removed."""
    entries = db.session.query(AccountingTransaction).filter_by(
        reference_type=reference_type,
        reference_id=reference_id,
    ).all()
    for entry in entries:
        db.session.delete(entry)
    db.session.flush()
    return len(entries)


def entries_for(*, reference_type: str, reference_id: int) -> list[AccountingTransaction]:
    return db.session.query(AccountingTransaction).filter_by(
        reference_type=reference_type,
        reference_id=reference_id,
    ).order_by(AccountingTransaction.id).all()


def post_distribution_revenue(distribution, *, user_id: int | None, imported: bool = False) -> AccountingTransaction | None:
    """Post the revenue of a settled distribution, or nothing when revenue is zero."""
    revenue = distribution.calculated_revenue_cents or 0
    if revenue <= 0:
        return None
    label = "Imported sale" if imported else "Settlement"
    return post_entry(
        amount_cents=revenue,
        transaction_date=distribution.settlement_date,
        description=f"{label} for distribution #{distribution.id}",
        reference_type=REFERENCE_DISTRIBUTION,
        reference_id=distribution.id,
        user_id=user_id,
        event_session_id=distribution.event_session_id,
    )


def retract_distribution_revenue(distribution_id: int) -> int:
    return retract_entries(reference_type=REFERENCE_DISTRIBUTION, reference_id=distribution_id)

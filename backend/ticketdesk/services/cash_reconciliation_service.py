# Overview: Staff cash reconciliation; expected vs declared cash, short/excess records and batch clearing.

"""
Staff cash reconciliation.

WHY: Per-ticket settlement says what each staff member should have collected.
Cash is handed in separately and in aggregate, so shortfalls and excesses are
tracked as their own records and cleared in batches once resolved.

DESIGN PRINCIPLES:
- Expected cash is a derived read, never stored state.
- A record is only written when declared cash differs from expected.
- difference = actual - expected (negative means short).
- Clearing is one way (unsettled -> settled) and idempotent.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import (
    Staff, StaffSettlement, TicketDistribution,
    CashSettlementStatus, DistributionStatus,
)
from ..errors import NotFound
from ..validation import ValidationError
from ticketdesk.time_utils import today
from .concurrency import transaction, lock_for_update
from .scope_service import require_writable_scope
from .audit_service import record_audit

logger = logging.getLogger(__name__)


def last_cleared_date(staff_id: int, scope_id: int) -> date | None:
    """Settlement date of the staff member's latest cleared record, not the day it was cleared."""
    return db.session.query(func.max(StaffSettlement.settlement_date)).filter(
        StaffSettlement.staff_id == staff_id,
        StaffSettlement.event_session_id == scope_id,
        StaffSettlement.status == CashSettlementStatus.SETTLED,
    ).scalar()


def compute_expected(staff_id: int, scope_id: int, as_of: date | None = None) -> int:
    """
    Cash (in cents) the staff member should be holding.

    Sum of cash_cents over the staff member's Settled distributions in the
    session, settled after the settlement date of their last cleared cash
    record (or ever, if none was cleared) and on or before as_of.
    """
    since = last_cleared_date(staff_id, scope_id)

    query = db.session.query(func.coalesce(func.sum(TicketDistribution.cash_cents), 0)).filter(
        TicketDistribution.staff_id == staff_id,
        TicketDistribution.event_session_id == scope_id,
        TicketDistribution.status == DistributionStatus.SETTLED,
    )
    if since is not None:
        query = query.filter(TicketDistribution.settlement_date > since)
    if as_of is not None:
        query = query.filter(TicketDistribution.settlement_date <= as_of)
    return int(query.scalar() or 0)


def record_settlement(
    staff_id: int,
    scope_id: int,
    expected_cents: int,
    actual_cents: int,
    notes: str | None = None,
    *,
    settlement_date: date | None = None,
    user_id: int | None = None,
) -> StaffSettlement | None:
    """
    Record a short/excess between declared and expected cash.

    Returns the new unsettled record, or None when the amounts match.
    """
    if actual_cents < 0:
        raise ValidationError("actual_cents must be >= 0")

    difference = actual_cents - expected_cents

    with transaction():
        require_writable_scope(scope_id)
        staff = db.session.get(Staff, staff_id)
        if not staff:
            raise NotFound(f"Staff member {staff_id} not found")

        if difference == 0:
            logger.info("Cash for staff #%s matches expected %s cents; nothing recorded", staff_id, expected_cents)
            return None

        record = StaffSettlement(
            staff_id=staff_id,
            event_session_id=scope_id,
            settlement_date=settlement_date or today(),
            expected_cents=expected_cents,
            actual_cents=actual_cents,
            difference_cents=difference,
            notes=notes,
            status=CashSettlementStatus.UNSETTLED,
            created_by_user_id=user_id,
        )
        db.session.add(record)
        db.session.flush()

        record_audit(
            "record_cash_settlement",
            user_id=user_id,
            details=f"'{staff.name}': expected {expected_cents}, actual {actual_cents}, difference {difference}",
            event_session_id=scope_id,
        )
    return record


def clear_batch(
    settlement_ids: list[int],
    *,
    user_id: int | None,
    cleared_on: date | None = None,
) -> list[StaffSettlement]:
    """
    Mark the given unsettled records as settled.

    Records already settled (or ids that do not exist) are left untouched, so
    re-running a batch is a no-op. Returns only the records cleared now.

    Raises:
        ArchivedScope: any record to clear belongs to an archived session;
            nothing is cleared
    """
    ids = sorted({int(i) for i in settlement_ids})
    if not ids:
        return []

    cleared_on = cleared_on or today()
    with transaction():
        rows = lock_for_update(
            db.session.query(StaffSettlement).filter(
                StaffSettlement.id.in_(ids),
                StaffSettlement.status == CashSettlementStatus.UNSETTLED,
            )
        ).all()
        for scope_id in sorted({row.event_session_id for row in rows}):
            require_writable_scope(scope_id)
        for row in rows:
            row.clear(user_id=user_id, on_date=cleared_on)
        db.session.flush()

        if rows:
            record_audit(
                "clear_cash_settlements",
                user_id=user_id,
                details=f"Cleared {len(rows)} cash settlement(s): {', '.join(str(r.id) for r in rows)}",
            )
    return rows


def get_staff_settlement(settlement_id: int) -> StaffSettlement:
    record = db.session.get(StaffSettlement, settlement_id)
    if not record:
        raise NotFound(f"Cash settlement {settlement_id} not found")
    return record


def list_staff_settlements(
    scope_id: int,
    *,
    staff_id: int | None = None,
    status: CashSettlementStatus | str | None = None,
) -> list[StaffSettlement]:
    query = db.session.query(StaffSettlement).filter_by(event_session_id=scope_id)
    if staff_id is not None:
        query = query.filter_by(staff_id=staff_id)
    if status is not None:
        query = query.filter(StaffSettlement.status == CashSettlementStatus(status))
    return query.order_by(StaffSettlement.settlement_date, StaffSettlement.id).all()


def unsettled_totals(scope_id: int) -> list[dict]:
    """Net open short/excess per staff member, omitting staff who net to zero."""
    rows = (
        db.session.query(Staff.id, Staff.name, func.sum(StaffSettlement.difference_cents))
        .join(Staff, Staff.id == StaffSettlement.staff_id)
        .filter(
            StaffSettlement.event_session_id == scope_id,
            StaffSettlement.status == CashSettlementStatus.UNSETTLED,
        )
        .group_by(Staff.id, Staff.name)
        .order_by(Staff.name)
        .all()
    )
    return [
        {"staff_id": staff_id, "staff_name": name, "total_unsettled_cents": int(total)}
        for staff_id, name, total in rows
        if total
    ]


def review_unsettled(scope_id: int) -> dict[str, dict]:
    """Unsettled records grouped by staff name with a running total, for the clearing review."""
    rows = (
        db.session.query(StaffSettlement, Staff.name)
        .join(Staff, Staff.id == StaffSettlement.staff_id)
        .filter(
            StaffSettlement.event_session_id == scope_id,
            StaffSettlement.status == CashSettlementStatus.UNSETTLED,
        )
        .order_by(Staff.name, StaffSettlement.settlement_date, StaffSettlement.id)
        .all()
    )

    grouped: "OrderedDict[str, dict]" = OrderedDict()
    for record, staff_name in rows:
        bucket = grouped.setdefault(staff_name, {"transactions": [], "total_difference_cents": 0})
        bucket["transactions"].append(record.to_dict())
        bucket["total_difference_cents"] += record.difference_cents
    return grouped

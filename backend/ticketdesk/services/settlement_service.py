# Overview: Settlement engine; closes distributions, splits unsold stock back to the shelf and posts revenue.

"""
Ticket settlement service.

WHY: A staff member returns the ticket book; the first unsold serial number
tells us exactly how many tickets were sold. Revenue is derived from that
count and the ride rate, never typed in by hand.

SETTLE (one transaction):
1. tickets_sold = returned_start_number - distributed_start_number
2. revenue = tickets_sold * ride.rate_cents (rate read now)
3. cash = revenue - electronic unless cash is supplied explicitly
4. distribution -> Settled with all settlement fields
5. bundle split: consumed part Settled, unsold remainder back to Available
6. one ledger entry for revenue > 0

UNSETTLE (one transaction): retract the ledger entry, delete the untouched
remainder bundle, restore the original bundle from the distribution's frozen
range, clear settlement fields. Refused when the remainder has been used.

Imported sales are legacy settled records with no physical stock. They are
created, edited and deleted here but can never be unsettled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..models import (
    Ride, TicketStock, TicketDistribution, AccountingTransaction,
    StockStatus, DistributionStatus,
)
from ..errors import (
    AlreadySettled, OutOfRange, RemainderAlreadyConsumed, NotFound,
    InvalidTransition, StaffOrRateNotFound,
)
from ..validation import ValidationError
from ticketdesk.time_utils import utcnow
from .concurrency import transaction, lock_for_update
from .scope_service import require_writable_scope
from .rate_service import get_ride
from .stock_service import split_bundle, find_remainder, is_referenced
from .ledger_service import post_distribution_revenue, retract_distribution_revenue
from .audit_service import record_audit

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    distribution: TicketDistribution
    remainder: TicketStock | None
    ledger_entry: AccountingTransaction | None


def _load_for_update(distribution_id: int, scope_id: int) -> TicketDistribution:
    dist = lock_for_update(
        db.session.query(TicketDistribution).filter_by(id=distribution_id, event_session_id=scope_id)
    ).first()
    if not dist:
        raise NotFound(f"Distribution {distribution_id} not found")
    return dist


def _non_negative(value: int | None, field: str) -> int:
    if value is None:
        return 0
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value


def settle_distribution(
    distribution_id: int,
    returned_start_number: int,
    *,
    scope_id: int,
    electronic_cents: int | None = None,
    cash_cents: int | None = None,
    settlement_date: date | None = None,
    user_id: int | None = None,
) -> SettlementResult:
    """
    Close a distribution from the first unsold serial number.

    Args:
        returned_start_number: first serial handed back unsold; tickets
            [distributed_start, returned_start) were sold. bundle end + 1
            means everything sold.
        electronic_cents: electronic collections, default 0
        cash_cents: explicit cash figure; derived as revenue - electronic when omitted.
            Either way it may be negative and is stored as-is for reconciliation.
        settlement_date: defaults to the distribution date

    Raises:
        AlreadySettled: distribution is not Distributed
        OutOfRange: returned_start_number outside [distributed_start, bundle_end + 1]
    """
    electronic = _non_negative(electronic_cents, "electronic_cents")

    with transaction():
        require_writable_scope(scope_id)
        dist = _load_for_update(distribution_id, scope_id)
        if dist.status is not DistributionStatus.DISTRIBUTED:
            raise AlreadySettled(f"Distribution #{dist.id} is {dist.status.value}")
        if dist.stock_id is None:
            raise NotFound(f"Distribution #{dist.id} has no stock bundle")

        bundle = lock_for_update(db.session.query(TicketStock).filter_by(id=dist.stock_id)).first()
        if not bundle:
            raise NotFound(f"Stock bundle {dist.stock_id} not found")

        if returned_start_number < dist.distributed_start_number or returned_start_number > bundle.end_number + 1:
            raise OutOfRange(
                f"Returned start {returned_start_number} is outside "
                f"[{dist.distributed_start_number}, {bundle.end_number + 1}]"
            )

        ride = db.session.get(Ride, dist.ride_id)
        if not ride:
            raise StaffOrRateNotFound(f"Ride {dist.ride_id} not found")

        tickets_sold = returned_start_number - dist.distributed_start_number
        revenue = tickets_sold * ride.rate_cents
        cash = revenue - electronic if cash_cents is None else cash_cents

        dist.settle(
            returned_start_number=returned_start_number,
            settlement_date=settlement_date or dist.distribution_date,
            tickets_sold=tickets_sold,
            rate_cents=ride.rate_cents,
            calculated_revenue_cents=revenue,
            cash_cents=cash,
            electronic_cents=electronic,
            settled_by_user_id=user_id,
            settled_at=utcnow(),
        )
        db.session.flush()

        remainder = split_bundle(bundle, returned_start_number)
        entry = post_distribution_revenue(dist, user_id=user_id)

        if cash < 0:
            logger.warning(
                "Distribution #%s settled with negative cash %s (electronic %s exceeds revenue %s)",
                dist.id, cash, electronic, revenue,
            )

        record_audit(
            "settle_distribution",
            user_id=user_id,
            details=f"Distribution #{dist.id}: {tickets_sold} sold, revenue {revenue} cents",
            event_session_id=scope_id,
        )

    return SettlementResult(distribution=dist, remainder=remainder, ledger_entry=entry)


def unsettle_distribution(distribution_id: int, *, scope_id: int, user_id: int | None = None) -> TicketDistribution:
    """
    Reverse a settlement completely.

    Raises:
        InvalidTransition: distribution is not Settled, or is an imported sale
        RemainderAlreadyConsumed: the split-off remainder was distributed, edited
            or retired after the settlement
    """
    with transaction():
        require_writable_scope(scope_id)
        dist = _load_for_update(distribution_id, scope_id)
        if dist.status is not DistributionStatus.SETTLED:
            raise InvalidTransition(f"Distribution #{dist.id} is {dist.status.value}, not Settled")
        if dist.is_imported:
            raise InvalidTransition(f"Distribution #{dist.id} is an imported sale; delete it instead")

        bundle = lock_for_update(db.session.query(TicketStock).filter_by(id=dist.stock_id)).first()
        if not bundle:
            raise NotFound(f"Stock bundle {dist.stock_id} not found")

        returned = dist.returned_start_number
        if dist.distributed_start_number < returned <= dist.distributed_end_number:
            remainder = find_remainder(bundle, returned)
            if (
                remainder is None
                or remainder.status is not StockStatus.AVAILABLE
                or remainder.end_number != dist.distributed_end_number
                or is_referenced(remainder.id)
            ):
                raise RemainderAlreadyConsumed(
                    f"Unsold tickets from distribution #{dist.id} (from serial {returned}) are already in use"
                )
            db.session.delete(remainder)
            db.session.flush()

        retract_distribution_revenue(dist.id)
        bundle.reopen(end_number=dist.distributed_end_number)
        dist.unsettle()
        db.session.flush()

        record_audit(
            "unsettle_distribution",
            user_id=user_id,
            details=f"Reversed settlement of distribution #{dist.id}",
            event_session_id=scope_id,
        )
    return dist


# =============================================================================
# IMPORTED (LEGACY) SALES
# =============================================================================

def import_sale(
    scope_id: int,
    sale_date: date,
    ride_id: int,
    tickets_sold: int,
    *,
    electronic_cents: int | None = None,
    rate_cents: int | None = None,
    staff_id: int | None = None,
    user_id: int | None = None,
) -> TicketDistribution:
    """
    Record a past sale that never went through physical stock.

    Creates a Settled distribution with no bundle and a zero serial snapshot,
    and posts its revenue. rate_cents overrides the ride rate for historical
    sales recorded at a different price.
    """
    if tickets_sold < 0:
        raise ValidationError("tickets_sold must be >= 0")
    electronic = _non_negative(electronic_cents, "electronic_cents")

    with transaction():
        require_writable_scope(scope_id)
        ride = get_ride(ride_id)
        rate = ride.rate_cents if rate_cents is None else rate_cents
        revenue = tickets_sold * rate

        dist = TicketDistribution(
            event_session_id=scope_id,
            staff_id=staff_id,
            ride_id=ride.id,
            stock_id=None,
            distribution_date=sale_date,
            distributed_start_number=0,
            distributed_end_number=0,
            status=DistributionStatus.SETTLED,
            settlement_date=sale_date,
            tickets_sold=tickets_sold,
            rate_cents=rate,
            calculated_revenue_cents=revenue,
            electronic_cents=electronic,
            cash_cents=revenue - electronic,
            settled_by_user_id=user_id,
            settled_at=utcnow(),
            created_by_user_id=user_id,
        )
        db.session.add(dist)
        db.session.flush()

        post_distribution_revenue(dist, user_id=user_id, imported=True)
        record_audit(
            "import_sale",
            user_id=user_id,
            details=f"Imported {tickets_sold} x '{ride.name}' on {sale_date.isoformat()}",
            event_session_id=scope_id,
        )
    return dist


def _load_imported(distribution_id: int, scope_id: int) -> TicketDistribution:
    dist = _load_for_update(distribution_id, scope_id)
    if not dist.is_imported:
        raise NotFound(f"Imported sale {distribution_id} not found")
    return dist


def update_imported_sale(
    distribution_id: int,
    *,
    scope_id: int,
    sale_date: date | None = None,
    ride_id: int | None = None,
    tickets_sold: int | None = None,
    electronic_cents: int | None = None,
    rate_cents: int | None = None,
    user_id: int | None = None,
) -> TicketDistribution:
    """
    Correct an imported sale; its ledger entry is rewritten to match.

    Revenue is recomputed only when tickets_sold or rate_cents is given, and
    then at the rate the sale was recorded with unless a new one is passed.
    """
    with transaction():
        require_writable_scope(scope_id)
        dist = _load_imported(distribution_id, scope_id)

        if ride_id is not None:
            dist.ride_id = get_ride(ride_id).id
        if sale_date is not None:
            dist.distribution_date = sale_date
            dist.settlement_date = sale_date
        if electronic_cents is not None:
            dist.electronic_cents = _non_negative(electronic_cents, "electronic_cents")

        # Revenue stays at the imported rate unless the count or rate is corrected.
        if tickets_sold is not None or rate_cents is not None:
            if tickets_sold is not None:
                if tickets_sold < 0:
                    raise ValidationError("tickets_sold must be >= 0")
                dist.tickets_sold = tickets_sold
            if rate_cents is not None:
                dist.rate_cents = rate_cents
            elif dist.rate_cents is None:
                dist.rate_cents = db.session.get(Ride, dist.ride_id).rate_cents
            dist.calculated_revenue_cents = dist.tickets_sold * dist.rate_cents
        dist.cash_cents = dist.calculated_revenue_cents - (dist.electronic_cents or 0)
        db.session.flush()

        retract_distribution_revenue(dist.id)
        post_distribution_revenue(dist, user_id=user_id, imported=True)

        record_audit(
            "edit_imported_sale",
            user_id=user_id,
            details=f"Imported sale #{dist.id} now {dist.tickets_sold} sold, {dist.calculated_revenue_cents} cents",
            event_session_id=scope_id,
        )
    return dist


def delete_imported_sale(distribution_id: int, *, scope_id: int, user_id: int | None = None) -> None:
    with transaction():
        require_writable_scope(scope_id)
        dist = _load_imported(distribution_id, scope_id)
        retract_distribution_revenue(dist.id)
        db.session.delete(dist)
        db.session.flush()
        record_audit(
            "delete_imported_sale",
            user_id=user_id,
            details=f"Deleted imported sale #{distribution_id}",
            event_session_id=scope_id,
        )

# Overview: Stock ledger; owns ticket bundles, their serial ranges and their lifecycle status.

"""
Ticket stock ledger.

DESIGN PRINCIPLES:
- A bundle is a contiguous serial range [start_number, end_number] with one price and color.
- Within an event session, non-Cancelled bundles of the same color never overlap.
  Bundles are only created from validated input or by splitting at settlement,
  and every creation path checks for overlap.
- Status changes go through the TicketStock transition methods or
  compare_and_swap_status(); nothing assigns status strings directly.
- Functions that take a bundle object (split_bundle, recall_bundle) join the
  caller's transaction; functions that take ids open their own.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import TicketStock, TicketDistribution, StockStatus
from ..errors import InvalidRange, Overlap, NotAvailable, NotFound
from ..validation import ValidationError, enforce_price_cents
from .concurrency import transaction, lock_for_update, compare_and_swap_status
from .scope_service import require_writable_scope
from .audit_service import record_audit

logger = logging.getLogger(__name__)


def _normalize_color(color: str) -> str:
    color = (color or "").strip()
    if not color:
        raise ValidationError("color is required")
    return color


def _validate_range(start_number: int, end_number: int) -> None:
    if start_number < 0 or end_number < 0:
        raise ValidationError("serial numbers must be >= 0")
    if start_number > end_number:
        raise InvalidRange(f"Invalid range: start {start_number} is after end {end_number}")


def find_overlapping(
    scope_id: int,
    color: str,
    start_number: int,
    end_number: int,
    *,
    exclude_id: int | None = None,
) -> TicketStock | None:
    """First non-Cancelled bundle of the same color in scope that intersects [start, end]."""
    query = db.session.query(TicketStock).filter(
        TicketStock.event_session_id == scope_id,
        func.lower(TicketStock.color) == color.lower(),
        TicketStock.status != StockStatus.CANCELLED,
        TicketStock.start_number <= end_number,
        TicketStock.end_number >= start_number,
    )
    if exclude_id is not None:
        query = query.filter(TicketStock.id != exclude_id)
    return query.order_by(TicketStock.start_number).first()


def _ensure_no_overlap(scope_id: int, color: str, start_number: int, end_number: int, *, exclude_id=None) -> None:
    clash = find_overlapping(scope_id, color, start_number, end_number, exclude_id=exclude_id)
    if clash:
        raise Overlap(
            f"{color} [{start_number}, {end_number}] overlaps bundle #{clash.id} "
            f"[{clash.start_number}, {clash.end_number}]"
        )


def create_bundle(
    scope_id: int,
    price_cents: int,
    color: str,
    start_number: int,
    end_number: int,
    *,
    user_id: int | None = None,
) -> TicketStock:
    """
    Add a new Available bundle to the session's stock.

    Raises:
        InvalidRange: start_number > end_number
        Overlap: range intersects a live bundle of the same color in this session
        ArchivedScope / NotFound: scope is not writable
    """
    enforce_price_cents(price_cents, "price_cents")
    color = _normalize_color(color)
    _validate_range(start_number, end_number)

    with transaction():
        require_writable_scope(scope_id)
        _ensure_no_overlap(scope_id, color, start_number, end_number)

        bundle = TicketStock(
            event_session_id=scope_id,
            price_cents=price_cents,
            color=color,
            start_number=start_number,
            end_number=end_number,
            status=StockStatus.AVAILABLE,
        )
        db.session.add(bundle)
        db.session.flush()

        record_audit(
            "create_stock",
            user_id=user_id,
            details=f"{color} [{start_number}, {end_number}] at {price_cents} cents",
            event_session_id=scope_id,
        )
    return bundle


def get_bundle(bundle_id: int, *, scope_id: int | None = None) -> TicketStock:
    bundle = db.session.get(TicketStock, bundle_id)
    if not bundle or (scope_id is not None and bundle.event_session_id != scope_id):
        raise NotFound(f"Stock bundle {bundle_id} not found")
    return bundle


def claim_for_distribution(bundle_id: int, scope_id: int) -> TicketStock:
    """
    Flip a bundle Available -> Distributed inside the caller's transaction.

    The flip is a conditional UPDATE on the status column, so of two racing
    claims exactly one matches a row and the other gets NotAvailable.
    """
    bundle = lock_for_update(
        db.session.query(TicketStock).filter_by(id=bundle_id, event_session_id=scope_id)
    ).first()
    if not bundle:
        raise NotFound(f"Stock bundle {bundle_id} not found")
    if bundle.status is not StockStatus.AVAILABLE:
        raise NotAvailable(f"Stock bundle #{bundle_id} is {bundle.status.value}, not Available")

    if not compare_and_swap_status(bundle, expected=StockStatus.AVAILABLE, new=StockStatus.DISTRIBUTED):
        raise NotAvailable(f"Stock bundle #{bundle_id} was distributed by another request")
    return bundle


def recall_bundle(bundle: TicketStock) -> None:
    """Distributed -> Available, for a distribution cancelled before settlement."""
    bundle.recall()
    db.session.flush()


def split_bundle(bundle: TicketStock, at_serial: int) -> TicketStock | None:
    """
    Close a distributed bundle at settlement.

    Tickets [start, at_serial) were consumed. Cases:
    - start < at_serial <= end: bundle becomes Settled [start, at_serial - 1] and a
      new Available bundle [at_serial, end] is returned
    - at_serial > end: whole bundle consumed, no remainder
    - at_serial <= start: nothing sold, bundle is Settled unmodified, no remainder

    Joins the caller's transaction.
    """
    original_end = bundle.end_number

    if at_serial <= bundle.start_number or at_serial > original_end:
        bundle.mark_settled()
        db.session.flush()
        return None

    bundle.mark_settled(end_number=at_serial - 1)
    db.session.flush()

    remainder = TicketStock(
        event_session_id=bundle.event_session_id,
        price_cents=bundle.price_cents,
        color=bundle.color,
        start_number=at_serial,
        end_number=original_end,
        status=StockStatus.AVAILABLE,
    )
    db.session.add(remainder)
    db.session.flush()
    logger.info(
        "Split bundle #%s at %s; remainder #%s [%s, %s]",
        bundle.id, at_serial, remainder.id, remainder.start_number, remainder.end_number,
    )
    return remainder


def find_remainder(bundle: TicketStock, at_serial: int) -> TicketStock | None:
    """Locate the bundle a split at at_serial produced (same session, color and price)."""
    return db.session.query(TicketStock).filter(
        TicketStock.event_session_id == bundle.event_session_id,
        TicketStock.color == bundle.color,
        TicketStock.price_cents == bundle.price_cents,
        TicketStock.start_number == at_serial,
        TicketStock.id != bundle.id,
    ).order_by(TicketStock.id.desc()).first()


def update_bundle(
    bundle_id: int,
    *,
    scope_id: int,
    price_cents: int | None = None,
    color: str | None = None,
    start_number: int | None = None,
    end_number: int | None = None,
    user_id: int | None = None,
) -> TicketStock:
    """Correct an Available bundle. Distributed or settled stock cannot be edited."""
    with transaction():
        require_writable_scope(scope_id)
        bundle = lock_for_update(
            db.session.query(TicketStock).filter_by(id=bundle_id, event_session_id=scope_id)
        ).first()
        if not bundle:
            raise NotFound(f"Stock bundle {bundle_id} not found")
        if bundle.status is not StockStatus.AVAILABLE:
            raise NotAvailable(f"Cannot edit stock bundle #{bundle_id} while {bundle.status.value}")

        new_price = bundle.price_cents if price_cents is None else price_cents
        new_color = bundle.color if color is None else _normalize_color(color)
        new_start = bundle.start_number if start_number is None else start_number
        new_end = bundle.end_number if end_number is None else end_number

        enforce_price_cents(new_price, "price_cents")
        _validate_range(new_start, new_end)
        _ensure_no_overlap(scope_id, new_color, new_start, new_end, exclude_id=bundle.id)

        bundle.price_cents = new_price
        bundle.color = new_color
        bundle.start_number = new_start
        bundle.end_number = new_end
        db.session.flush()

        record_audit(
            "edit_stock",
            user_id=user_id,
            details=f"Bundle #{bundle.id} now {new_color} [{new_start}, {new_end}] at {new_price} cents",
            event_session_id=scope_id,
        )
    return bundle


def retire_bundle(bundle_id: int, *, scope_id: int, user_id: int | None = None) -> TicketStock:
    """Available -> Cancelled. The range stops counting for overlap checks."""
    with transaction():
        require_writable_scope(scope_id)
        bundle = lock_for_update(
            db.session.query(TicketStock).filter_by(id=bundle_id, event_session_id=scope_id)
        ).first()
        if not bundle:
            raise NotFound(f"Stock bundle {bundle_id} not found")
        if bundle.status is not StockStatus.AVAILABLE:
            raise NotAvailable(f"Only available stock can be retired; bundle #{bundle_id} is {bundle.status.value}")
        bundle.retire()
        db.session.flush()
        record_audit(
            "retire_stock",
            user_id=user_id,
            details=f"Bundle #{bundle.id} {bundle.color} [{bundle.start_number}, {bundle.end_number}]",
            event_session_id=scope_id,
        )
    return bundle


def list_bundles(scope_id: int, *, status: StockStatus | str | None = None, q: str | None = None) -> list[TicketStock]:
    query = db.session.query(TicketStock).filter_by(event_session_id=scope_id)
    if status is not None:
        query = query.filter(TicketStock.status == StockStatus(status))
    if q:
        like = f"%{q.strip()}%"
        filters = [TicketStock.color.ilike(like)]
        if q.strip().isdigit():
            serial = int(q.strip())
            filters.append((TicketStock.start_number <= serial) & (TicketStock.end_number >= serial))
        query = query.filter(or_(*filters))
    return query.order_by(TicketStock.price_cents, TicketStock.color, TicketStock.start_number).all()


def is_referenced(bundle_id: int) -> bool:
    """True when any distribution, in any status, points at the bundle."""
    return db.session.query(TicketDistribution.id).filter_by(stock_id=bundle_id).first() is not None


def stock_summary(scope_id: int) -> list[dict]:
    """
    Ticket counts per (color, price) for live bundles in a session.

    Derived from current bundle rows only. Because settlement truncates the
    consumed bundle and splits off the remainder, these counts always add up
    to the physical stock that was loaded.
    """
    tickets = TicketStock.end_number - TicketStock.start_number + 1

    def _sum_for(status: StockStatus):
        return func.coalesce(func.sum(case((TicketStock.status == status, tickets), else_=0)), 0)

    rows = (
        db.session.query(
            TicketStock.color,
            TicketStock.price_cents,
            _sum_for(StockStatus.AVAILABLE),
            _sum_for(StockStatus.DISTRIBUTED),
            _sum_for(StockStatus.SETTLED),
        )
        .filter(
            TicketStock.event_session_id == scope_id,
            TicketStock.status != StockStatus.CANCELLED,
        )
        .group_by(TicketStock.color, TicketStock.price_cents)
        .order_by(TicketStock.price_cents, TicketStock.color)
        .all()
    )

    return [
        {
            "color": color,
            "price_cents": price_cents,
            "available_tickets": int(available),
            "distributed_tickets": int(distributed),
            "settled_tickets": int(settled),
            "total_tickets": int(available) + int(distributed) + int(settled),
        }
        for color, price_cents, available, distributed, settled in rows
    ]

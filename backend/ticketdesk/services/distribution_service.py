# Overview: Distribution manager; hands whole stock bundles to staff and manages unsettled distributions.

"""
Ticket distribution service.

WHY: A distribution records that one staff member holds one physical ticket
book for one ride. It freezes the bundle's serial range at hand-out time;
settlement and reversal both rely on that snapshot.

LIFECYCLE:
1. Distributed: created here, bundle flipped Available -> Distributed atomically
2. Settled: see settlement_service
3. Cancelled: terminal, bundle recalled to Available

This module is the only one allowed to move a bundle Available -> Distributed.
"""

from __future__ import annotations

import logging
from datetime import date

from ..extensions import db
from ..models import Staff, TicketDistribution, DistributionStatus
from ..errors import AlreadySettled, NotFound, StaffOrRateNotFound
from .concurrency import transaction, lock_for_update
from .scope_service import require_writable_scope
from .rate_service import get_active_ride
from .stock_service import claim_for_distribution, recall_bundle
from .audit_service import record_audit

logger = logging.getLogger(__name__)


def _get_active_staff(staff_id: int) -> Staff:
    staff = db.session.get(Staff, staff_id)
    if not staff or not staff.is_active:
        raise StaffOrRateNotFound(f"Staff member {staff_id} not found or inactive")
    return staff


def _load_for_update(distribution_id: int, scope_id: int) -> TicketDistribution:
    dist = lock_for_update(
        db.session.query(TicketDistribution).filter_by(id=distribution_id, event_session_id=scope_id)
    ).first()
    if not dist:
        raise NotFound(f"Distribution {distribution_id} not found")
    return dist


def _require_open(dist: TicketDistribution) -> None:
    if dist.status is not DistributionStatus.DISTRIBUTED:
        raise AlreadySettled(f"Distribution #{dist.id} is {dist.status.value}")


def get_distribution(distribution_id: int, *, scope_id: int | None = None) -> TicketDistribution:
    dist = db.session.get(TicketDistribution, distribution_id)
    if not dist or (scope_id is not None and dist.event_session_id != scope_id):
        raise NotFound(f"Distribution {distribution_id} not found")
    return dist


def list_distributions(
    scope_id: int,
    *,
    status: DistributionStatus | str | None = None,
    staff_id: int | None = None,
) -> list[TicketDistribution]:
    query = db.session.query(TicketDistribution).filter_by(event_session_id=scope_id)
    if status is not None:
        query = query.filter(TicketDistribution.status == DistributionStatus(status))
    if staff_id is not None:
        query = query.filter_by(staff_id=staff_id)
    return query.order_by(TicketDistribution.distribution_date, TicketDistribution.id).all()


def distribute(
    scope_id: int,
    staff_id: int,
    ride_id: int,
    bundle_id: int,
    distribution_date: date,
    *,
    user_id: int | None = None,
) -> TicketDistribution:
    """
    Hand a whole Available bundle to a staff member for one ride.

    The distribution insert and the bundle status flip are one transaction.

    Raises:
        StaffOrRateNotFound: staff or ride missing/inactive
        NotFound: bundle missing in this session
        NotAvailable: bundle is not Available (including losing a race)
        ArchivedScope: scope is not writable
    """
    with transaction():
        require_writable_scope(scope_id)
        staff = _get_active_staff(staff_id)
        ride = get_active_ride(ride_id)
        bundle = claim_for_distribution(bundle_id, scope_id)

        if bundle.price_cents != ride.rate_cents:
            logger.warning(
                "Bundle #%s priced %s cents distributed for ride %r at %s cents",
                bundle.id, bundle.price_cents, ride.name, ride.rate_cents,
            )

        dist = TicketDistribution(
            event_session_id=scope_id,
            staff_id=staff.id,
            ride_id=ride.id,
            stock_id=bundle.id,
            distribution_date=distribution_date,
            distributed_start_number=bundle.start_number,
            distributed_end_number=bundle.end_number,
            status=DistributionStatus.DISTRIBUTED,
            created_by_user_id=user_id,
        )
        db.session.add(dist)
        db.session.flush()

        record_audit(
            "distribute_tickets",
            user_id=user_id,
            details=(
                f"Distribution #{dist.id}: {bundle.color} [{bundle.start_number}, {bundle.end_number}] "
                f"to '{staff.name}' for '{ride.name}'"
            ),
            event_session_id=scope_id,
        )
    return dist


def cancel_distribution(distribution_id: int, *, scope_id: int, user_id: int | None = None) -> TicketDistribution:
    """Distributed -> Cancelled, returning the bundle to Available."""
    with transaction():
        require_writable_scope(scope_id)
        dist = _load_for_update(distribution_id, scope_id)
        _require_open(dist)

        if dist.stock is not None:
            recall_bundle(dist.stock)
        dist.cancel()
        db.session.flush()

        record_audit(
            "cancel_distribution",
            user_id=user_id,
            details=f"Cancelled distribution #{dist.id}",
            event_session_id=scope_id,
        )
    return dist


def delete_distribution(distribution_id: int, *, scope_id: int, user_id: int | None = None) -> None:
    """Remove an unsettled distribution entirely and recall its bundle."""
    with transaction():
        require_writable_scope(scope_id)
        dist = _load_for_update(distribution_id, scope_id)
        _require_open(dist)

        if dist.stock is not None:
            recall_bundle(dist.stock)
        db.session.delete(dist)
        db.session.flush()

        record_audit(
            "recall_distribution",
            user_id=user_id,
            details=f"Recalled and deleted distribution #{distribution_id}",
            event_session_id=scope_id,
        )


def edit_distribution(
    distribution_id: int,
    *,
    scope_id: int,
    staff_id: int | None = None,
    ride_id: int | None = None,
    bundle_id: int | None = None,
    distribution_date: date | None = None,
    user_id: int | None = None,
) -> TicketDistribution:
    """
    Administrative correction of an unsettled distribution.

    Changing the bundle recalls the old one and claims the new one in the same
    transaction, and re-derives the frozen serial range from the new bundle.
    """
    with transaction():
        require_writable_scope(scope_id)
        dist = _load_for_update(distribution_id, scope_id)
        _require_open(dist)

        if staff_id is not None:
            dist.staff_id = _get_active_staff(staff_id).id
        if ride_id is not None:
            dist.ride_id = get_active_ride(ride_id).id
        if distribution_date is not None:
            dist.distribution_date = distribution_date

        if bundle_id is not None and bundle_id != dist.stock_id:
            if dist.stock is not None:
                recall_bundle(dist.stock)
            new_bundle = claim_for_distribution(bundle_id, scope_id)
            dist.stock = new_bundle
            dist.distributed_start_number = new_bundle.start_number
            dist.distributed_end_number = new_bundle.end_number

        db.session.flush()

        record_audit(
            "edit_distribution",
            user_id=user_id,
            details=f"Edited distribution #{dist.id}",
            event_session_id=scope_id,
        )
    return dist

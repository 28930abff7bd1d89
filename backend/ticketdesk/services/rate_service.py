# Overview: Rate catalog ("rides"): named sale categories bound to a unit price.

"""
The ride rate is the authoritative price for settlement revenue. It is read
at settlement time and the computed revenue is stored on the distribution,
so editing or deactivating a ride never changes already-settled figures.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Ride, TicketDistribution
from ..errors import NotFound, StaffOrRateNotFound
from ..validation import ConflictError, ValidationError, enforce_price_cents
from .concurrency import transaction
from .audit_service import record_audit

logger = logging.getLogger(__name__)


def create_ride(name: str, rate_cents: int, *, user_id: int | None = None) -> Ride:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    enforce_price_cents(rate_cents)

    with transaction():
        if find_ride_by_name(name):
            raise ConflictError(f"Ride '{name}' already exists")
        ride = Ride(name=name, rate_cents=rate_cents, is_active=True)
        db.session.add(ride)
        db.session.flush()
        record_audit("create_ride", user_id=user_id, details=f"Ride '{name}' at {rate_cents} cents")
    return ride


def get_ride(ride_id: int) -> Ride:
    ride = db.session.get(Ride, ride_id)
    if not ride:
        raise NotFound(f"Ride {ride_id} not found")
    return ride


def get_active_ride(ride_id: int) -> Ride:
    """Lookup used by distribution: missing and inactive rides are both unusable."""
    ride = db.session.get(Ride, ride_id)
    if not ride or not ride.is_active:
        raise StaffOrRateNotFound(f"Ride {ride_id} not found or inactive")
    return ride


def find_ride_by_name(name: str) -> Ride | None:
    return db.session.query(Ride).filter_by(name=name.strip()).first()


def find_or_create_ride(name: str, rate_cents: int) -> Ride:
    """
    Resolve a ride by name, creating it at rate_cents when missing.

    Used only by legacy sale imports. Joins the caller's transaction.
    """
    ride = find_ride_by_name(name)
    if ride:
        return ride
    enforce_price_cents(rate_cents)
    ride = Ride(name=name.strip(), rate_cents=rate_cents, is_active=True)
    db.session.add(ride)
    db.session.flush()
    logger.info("Created ride %r at %s cents during sales import", ride.name, rate_cents)
    return ride


def list_rides(active_only: bool = False) -> list[Ride]:
    query = db.session.query(Ride)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(Ride.name).all()


def set_ride_active(ride_id: int, is_active: bool, *, user_id: int | None = None) -> Ride:
    with transaction():
        ride = get_ride(ride_id)
        ride.is_active = bool(is_active)
        record_audit(
            "toggle_ride_active",
            user_id=user_id,
            details=f"Ride '{ride.name}' is_active={ride.is_active}",
        )
    return ride


def toggle_ride_active(ride_id: int, *, user_id: int | None = None) -> Ride:
    ride = get_ride(ride_id)
    return set_ride_active(ride_id, not ride.is_active, user_id=user_id)


def delete_ride(ride_id: int, *, user_id: int | None = None) -> None:
    """Delete a ride that no distribution references. Deactivate it otherwise."""
    with transaction():
        ride = get_ride(ride_id)
        in_use = db.session.query(TicketDistribution.id).filter_by(ride_id=ride_id).first()
        if in_use:
            raise ConflictError(f"Ride '{ride.name}' has distributions; deactivate it instead")
        db.session.delete(ride)
        record_audit("delete_ride", user_id=user_id, details=f"Deleted ride '{ride.name}'")

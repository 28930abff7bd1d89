# Overview: Read-mostly staff directory used by distribution and cash reconciliation.

from __future__ import annotations

from ..extensions import db
from ..models import Staff
from ..errors import NotFound
from ..validation import ConflictError, ValidationError
from .concurrency import transaction


def create_staff(name: str, phone: str | None = None, role: str | None = None) -> Staff:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    with transaction():
        if find_staff_by_name(name):
            raise ConflictError(f"Staff member '{name}' already exists")
        staff = Staff(name=name, phone=phone, role=role, is_active=True)
        db.session.add(staff)
        db.session.flush()
    return staff


def get_staff(staff_id: int) -> Staff:
    staff = db.session.get(Staff, staff_id)
    if not staff:
        raise NotFound(f"Staff member {staff_id} not found")
    return staff


def find_staff_by_name(name: str) -> Staff | None:
    return db.session.query(Staff).filter_by(name=name.strip()).first()


def list_staff(active_only: bool = False) -> list[Staff]:
    query = db.session.query(Staff)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(Staff.name).all()

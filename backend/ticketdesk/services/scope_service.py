# Overview: Service-layer operations for event sessions (scopes); resolves which session is writable.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import EventSession
from ..errors import NotFound, ArchivedScope
from ..validation import ConflictError, ValidationError
from .concurrency import transaction, lock_for_update
from .audit_service import record_audit


def get_scope(scope_id: int) -> EventSession:
    scope = db.session.get(EventSession, scope_id)
    if not scope:
        raise NotFound(f"Event session {scope_id} not found")
    return scope


def get_active_scope() -> EventSession | None:
    return db.session.query(EventSession).filter_by(is_active=True).first()


def list_scopes() -> list[EventSession]:
    return db.session.query(EventSession).order_by(
        EventSession.is_active.desc(), EventSession.start_date.desc(), EventSession.name
    ).all()


def require_writable_scope(scope_id: int) -> EventSession:
    """
    Return the scope if ticketing writes are allowed against it.

    Raises:
        NotFound: scope does not exist
        ArchivedScope: scope exists but is not the active session
    """
    scope = get_scope(scope_id)
    if not scope.is_active:
        raise ArchivedScope(f"Event session '{scope.name}' is archived; switch to the active session to make changes")
    return scope


def create_scope(
    name: str,
    start_date: date,
    end_date: date | None = None,
    *,
    activate: bool = False,
) -> EventSession:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if end_date is not None and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date")

    with transaction():
        if db.session.query(EventSession).filter_by(name=name).first():
            raise ConflictError(f"Event session '{name}' already exists")
        scope = EventSession(name=name, start_date=start_date, end_date=end_date, is_active=False)
        db.session.add(scope)
        db.session.flush()
        if activate:
            _activate(scope)
        record_audit("create_event_session", details=f"Created event session '{name}'", event_session_id=scope.id)
    return scope


def activate_scope(scope_id: int) -> EventSession:
    """Make scope_id the single writable session."""
    with transaction():
        scope = lock_for_update(db.session.query(EventSession).filter_by(id=scope_id)).first()
        if not scope:
            raise NotFound(f"Event session {scope_id} not found")
        _activate(scope)
        record_audit("activate_event_session", details=f"Activated '{scope.name}'", event_session_id=scope.id)
    return scope


def _activate(scope: EventSession) -> None:
    db.session.query(EventSession).filter(
        EventSession.id != scope.id,
        EventSession.is_active.is_(True),
    ).update({EventSession.is_active: False}, synchronize_session="fetch")
    scope.is_active = True
    db.session.flush()

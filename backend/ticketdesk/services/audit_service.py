# Overview: Best-effort administrative audit trail written after the primary transaction commits.

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import AuditLog

logger = logging.getLogger(__name__)

_PENDING_KEY = "ticketdesk.pending_audit"


def record_audit(
    action: str,
    *,
    user_id: int | None = None,
    details: str | None = None,
    event_session_id: int | None = None,
) -> None:
    """
    Queue an audit entry on the current session.

    The entry is written by flush_pending() once the surrounding transaction
    has committed, so an audit failure can never roll back the action it
    describes.
    """
    session = db.session()
    session.info.setdefault(_PENDING_KEY, []).append(
        {
            "action": action,
            "user_id": user_id,
            "details": details,
            "event_session_id": event_session_id,
        }
    )


def discard_pending(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


def flush_pending(session: Session) -> int:
    """Write queued audit entries in their own short transaction. Returns rows written."""
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return 0
    try:
        session.add_all(AuditLog(**entry) for entry in pending)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to write %d audit log entries", len(pending))
        return 0
    return len(pending)


def list_audit_entries(*, event_session_id: int | None = None, limit: int = 100) -> list[AuditLog]:
    query = db.session.query(AuditLog)
    if event_session_id is not None:
        query = query.filter_by(event_session_id=event_session_id)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()

# Overview: Transaction scope, row locking and compare-and-swap helpers shared by the ticketing services.

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..extensions import db
from . import audit_service

_DEPTH_KEY = "ticketdesk.tx_depth"


@contextmanager
def transaction() -> Iterator[Session]:
    """
    Unit of work for one ticketing operation.

    Commits when the block exits normally and rolls back on any exception,
    re-raising it. Nested use joins the enclosing transaction: only the
    outermost block commits or rolls back, so a bulk upload that calls
    distribute() per line is still all-or-nothing.

    Audit entries queued inside the block are written after the outermost
    commit and dropped on rollback.
    """
    session = db.session()
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except BaseException:
        if depth == 0:
            session.rollback()
            audit_service.discard_pending(session)
        raise
    finally:
        session.info[_DEPTH_KEY] = depth

    if depth == 0:
        audit_service.flush_pending(session)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    compare_and_swap_status() is the guarantee that holds on every backend.
    """
    return query.with_for_update()


def compare_and_swap_status(instance, *, expected, new, session=None) -> bool:
    """
    Flip instance.status from expected to new with a single conditional UPDATE.

    Returns False when zero rows matched, i.e. another transaction changed the
    status first. The edge must be legal for the model's transition table.
    Runs on db.session unless another session is given.
    """
    session = session or db.session
    model = type(instance)
    model.check_edge(expected, new)

    result = session.execute(
        update(model)
        .where(model.id == instance.id, model.status == expected)
        .values(status=new)
        .execution_options(synchronize_session=False)
    )
    session.expire(instance, ["status"])
    return result.rowcount == 1

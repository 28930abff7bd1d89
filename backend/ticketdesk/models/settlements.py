from __future__ import annotations

import enum

from sqlalchemy.orm import validates

from ..extensions import db
from ..errors import InvalidTransition
from ticketdesk.time_utils import to_utc_z, to_iso_date


class CashSettlementStatus(str, enum.Enum):
    UNSETTLED = "unsettled"
    SETTLED = "settled"


class StaffSettlement(db.Model):
    """
    Staff cash reconciliation record (short/excess).

    Compares the cash a staff member physically handed in against the cash
    the system expected from their settled distributions. This is a lagging
    aggregate control and is not linked to individual distributions.

    LIFECYCLE: unsettled -> settled (batch clear, one way).
    """
    __tablename__ = "staff_settlements"
    __table_args__ = (
        db.Index("ix_staff_settlements_session_status", "event_session_id", "status"),
        db.Index("ix_staff_settlements_staff_session", "staff_id", "event_session_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("booking_staff.id"), nullable=False)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=False)

    settlement_date = db.Column(db.Date, nullable=False)
    expected_cents = db.Column(db.Integer, nullable=False)
    actual_cents = db.Column(db.Integer, nullable=False)
    difference_cents = db.Column(db.Integer, nullable=False)  # actual - expected
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(
        db.Enum(
            CashSettlementStatus,
            name="cash_settlement_status",
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        default=CashSettlementStatus.UNSETTLED,
    )
    settled_by_user_id = db.Column(db.Integer, nullable=True)
    settled_on_date = db.Column(db.Date, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    staff = db.relationship("Staff", backref=db.backref("cash_settlements", lazy=True))

    @validates("status")
    def _guard_status(self, key, value):
        new = CashSettlementStatus(value)
        current = self.status
        if current is None and new is CashSettlementStatus.UNSETTLED:
            return new
        if current is CashSettlementStatus.UNSETTLED and new is CashSettlementStatus.SETTLED:
            return new
        shown = current.value if current is not None else "new"
        raise InvalidTransition(f"Illegal cash settlement status change: {shown} -> {new.value}")

    def clear(self, *, user_id: int | None, on_date) -> None:
        self.status = CashSettlementStatus.SETTLED
        self.settled_by_user_id = user_id
        self.settled_on_date = on_date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "event_session_id": self.event_session_id,
            "settlement_date": to_iso_date(self.settlement_date),
            "expected_cents": self.expected_cents,
            "actual_cents": self.actual_cents,
            "difference_cents": self.difference_cents,
            "notes": self.notes,
            "status": self.status.value,
            "settled_by_user_id": self.settled_by_user_id,
            "settled_on_date": to_iso_date(self.settled_on_date),
            "created_at": to_utc_z(self.created_at),
        }

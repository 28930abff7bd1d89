from __future__ import annotations

import enum

from sqlalchemy.orm import validates

from ..extensions import db
from ..errors import InvalidTransition
from ticketdesk.time_utils import to_utc_z, to_iso_date


class StockStatus(str, enum.Enum):
    AVAILABLE = "Available"
    DISTRIBUTED = "Distributed"
    SETTLED = "Settled"
    CANCELLED = "Cancelled"


class DistributionStatus(str, enum.Enum):
    DISTRIBUTED = "Distributed"
    SETTLED = "Settled"
    CANCELLED = "Cancelled"


# Legal lifecycle edges. None is the "not yet persisted" state.
STOCK_TRANSITIONS: dict[StockStatus | None, frozenset[StockStatus]] = {
    None: frozenset({StockStatus.AVAILABLE}),
    StockStatus.AVAILABLE: frozenset({StockStatus.DISTRIBUTED, StockStatus.CANCELLED}),
    StockStatus.DISTRIBUTED: frozenset({StockStatus.AVAILABLE, StockStatus.SETTLED}),
    StockStatus.SETTLED: frozenset({StockStatus.DISTRIBUTED}),
    StockStatus.CANCELLED: frozenset(),
}

DISTRIBUTION_TRANSITIONS: dict[DistributionStatus | None, frozenset[DistributionStatus]] = {
    # Imported legacy sales are born Settled
    None: frozenset({DistributionStatus.DISTRIBUTED, DistributionStatus.SETTLED}),
    DistributionStatus.DISTRIBUTED: frozenset({DistributionStatus.SETTLED, DistributionStatus.CANCELLED}),
    DistributionStatus.SETTLED: frozenset({DistributionStatus.DISTRIBUTED}),
    DistributionStatus.CANCELLED: frozenset(),
}


def check_transition(table: dict, current, new, entity: str) -> None:
    """Raise InvalidTransition unless current -> new is a legal edge."""
    if new not in table.get(current, frozenset()):
        shown = current.value if current is not None else "new"
        raise InvalidTransition(f"Illegal {entity} status change: {shown} -> {new.value}")


def _status_column(enum_cls, name: str, default):
    return db.Column(
        db.Enum(
            enum_cls,
            name=name,
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        default=default,
        index=True,
    )


class Ride(db.Model):
    """
    Sale category ("ride") bound to a unit price.

    Revenue is computed from rate_cents at settlement time and stored on the
    distribution, so later price edits never change settled revenue.
    """
    __tablename__ = "rides"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_rides_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    rate_cents = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Ride id={self.id} name={self.name!r} rate_cents={self.rate_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rate_cents": self.rate_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class TicketStock(db.Model):
    """
    A bundle of ticket serial numbers [start_number, end_number] sharing one
    price and color.

    LIFECYCLE:
    - Available: on the shelf, can be distributed
    - Distributed: handed to exactly one staff member
    - Settled: consumed portion of a settled distribution
    - Cancelled: retired; its range no longer counts for overlap checks

    INVARIANT: within one event session, non-Cancelled bundles of the same
    color never overlap. Bundles only come from validated input ranges or from
    splitting an existing bundle at settlement.
    """
    __tablename__ = "ticket_stock"
    __table_args__ = (
        db.CheckConstraint("start_number <= end_number", name="ck_ticket_stock_range"),
        db.Index("ix_ticket_stock_session_color_range", "event_session_id", "color", "start_number", "end_number"),
        db.Index("ix_ticket_stock_session_status", "event_session_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=False, index=True)

    price_cents = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(32), nullable=False)
    start_number = db.Column(db.Integer, nullable=False)
    end_number = db.Column(db.Integer, nullable=False)

    status = _status_column(StockStatus, "stock_status", StockStatus.AVAILABLE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    event_session = db.relationship("EventSession", backref=db.backref("ticket_stock", lazy=True))

    @validates("status")
    def _guard_status(self, key, value):
        new = StockStatus(value)
        check_transition(STOCK_TRANSITIONS, self.status, new, "stock bundle")
        return new

    @classmethod
    def check_edge(cls, current, new) -> None:
        check_transition(STOCK_TRANSITIONS, StockStatus(current), StockStatus(new), "stock bundle")

    # Transition functions: the only code that assigns status.

    def recall(self) -> None:
        self.status = StockStatus.AVAILABLE

    def mark_settled(self, *, end_number: int | None = None) -> None:
        self.status = StockStatus.SETTLED
        if end_number is not None:
            self.end_number = end_number

    def reopen(self, *, end_number: int) -> None:
        """Settled -> Distributed, restoring the range handed out."""
        self.status = StockStatus.DISTRIBUTED
        self.end_number = end_number

    def retire(self) -> None:
        self.status = StockStatus.CANCELLED

    @property
    def ticket_count(self) -> int:
        return self.end_number - self.start_number + 1

    def __repr__(self) -> str:
        return (
            f"<TicketStock id={self.id} {self.color} [{self.start_number}, {self.end_number}] "
            f"status={self.status.value if self.status else None}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_session_id": self.event_session_id,
            "price_cents": self.price_cents,
            "color": self.color,
            "start_number": self.start_number,
            "end_number": self.end_number,
            "ticket_count": self.ticket_count,
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TicketDistribution(db.Model):
    """
    A stock bundle handed to one staff member for one ride.

    distributed_start_number/distributed_end_number are a frozen snapshot of
    the bundle range at distribution time. Settlement truncates the bundle
    itself, and reversal restores it from this snapshot.

    stock_id is NULL for imported legacy sales that never had physical stock.
    Settlement fields are populated only while status is Settled.
    """
    __tablename__ = "ticket_distributions"
    __table_args__ = (
        db.Index("ix_ticket_dist_session_status", "event_session_id", "status"),
        db.Index("ix_ticket_dist_staff_settlement", "staff_id", "event_session_id", "settlement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=False, index=True)

    staff_id = db.Column(db.Integer, db.ForeignKey("booking_staff.id"), nullable=True, index=True)
    ride_id = db.Column(db.Integer, db.ForeignKey("rides.id"), nullable=False, index=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("ticket_stock.id"), nullable=True, index=True)

    distribution_date = db.Column(db.Date, nullable=False)
    distributed_start_number = db.Column(db.Integer, nullable=False, default=0)
    distributed_end_number = db.Column(db.Integer, nullable=False, default=0)

    status = _status_column(DistributionStatus, "distribution_status", DistributionStatus.DISTRIBUTED)

    # Settlement fields (Settled only)
    returned_start_number = db.Column(db.Integer, nullable=True)
    settlement_date = db.Column(db.Date, nullable=True, index=True)
    tickets_sold = db.Column(db.Integer, nullable=True)
    rate_cents = db.Column(db.Integer, nullable=True)  # unit rate revenue was computed at
    calculated_revenue_cents = db.Column(db.Integer, nullable=True)
    cash_cents = db.Column(db.Integer, nullable=True)
    electronic_cents = db.Column(db.Integer, nullable=True)
    settled_by_user_id = db.Column(db.Integer, nullable=True)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    staff = db.relationship("Staff", backref=db.backref("distributions", lazy=True))
    ride = db.relationship("Ride", backref=db.backref("distributions", lazy=True))
    stock = db.relationship("TicketStock", backref=db.backref("distributions", lazy=True))
    event_session = db.relationship("EventSession", backref=db.backref("distributions", lazy=True))

    SETTLEMENT_FIELDS = (
        "returned_start_number",
        "settlement_date",
        "tickets_sold",
        "rate_cents",
        "calculated_revenue_cents",
        "cash_cents",
        "electronic_cents",
        "settled_by_user_id",
        "settled_at",
    )

    @validates("status")
    def _guard_status(self, key, value):
        new = DistributionStatus(value)
        check_transition(DISTRIBUTION_TRANSITIONS, self.status, new, "distribution")
        return new

    @classmethod
    def check_edge(cls, current, new) -> None:
        check_transition(DISTRIBUTION_TRANSITIONS, DistributionStatus(current), DistributionStatus(new), "distribution")

    @property
    def is_imported(self) -> bool:
        return self.stock_id is None

    # Transition functions: the only code that assigns status.

    def settle(
        self,
        *,
        returned_start_number: int | None,
        settlement_date,
        tickets_sold: int,
        rate_cents: int,
        calculated_revenue_cents: int,
        cash_cents: int,
        electronic_cents: int,
        settled_by_user_id: int | None,
        settled_at,
    ) -> None:
        self.status = DistributionStatus.SETTLED
        self.returned_start_number = returned_start_number
        self.settlement_date = settlement_date
        self.tickets_sold = tickets_sold
        self.rate_cents = rate_cents
        self.calculated_revenue_cents = calculated_revenue_cents
        self.cash_cents = cash_cents
        self.electronic_cents = electronic_cents
        self.settled_by_user_id = settled_by_user_id
        self.settled_at = settled_at

    def unsettle(self) -> None:
        self.status = DistributionStatus.DISTRIBUTED
        for field in self.SETTLEMENT_FIELDS:
            setattr(self, field, None)

    def cancel(self) -> None:
        self.status = DistributionStatus.CANCELLED

    def __repr__(self) -> str:
        return (
            f"<TicketDistribution id={self.id} staff_id={self.staff_id} ride_id={self.ride_id} "
            f"stock_id={self.stock_id} status={self.status.value if self.status else None}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_session_id": self.event_session_id,
            "staff_id": self.staff_id,
            "ride_id": self.ride_id,
            "stock_id": self.stock_id,
            "distribution_date": to_iso_date(self.distribution_date),
            "distributed_start_number": self.distributed_start_number,
            "distributed_end_number": self.distributed_end_number,
            "status": self.status.value,
            "is_imported": self.is_imported,
            "returned_start_number": self.returned_start_number,
            "settlement_date": to_iso_date(self.settlement_date),
            "tickets_sold": self.tickets_sold,
            "rate_cents": self.rate_cents,
            "calculated_revenue_cents": self.calculated_revenue_cents,
            "cash_cents": self.cash_cents,
            "electronic_cents": self.electronic_cents,
            "settled_by_user_id": self.settled_by_user_id,
            "settled_at": to_utc_z(self.settled_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from ticketdesk.time_utils import to_utc_z, to_iso_date


class AccountingTransaction(db.Model):
    """
    Financial ledger row.

    The ticketing core only ever appends income rows here and deletes the
    rows it created itself. Rows are matched by (reference_type, reference_id),
    never by amount or description text.
    """
    __tablename__ = "accounting_transactions"
    __table_args__ = (
        db.Index("ix_acctx_reference", "reference_type", "reference_id"),
        db.Index("ix_acctx_session_category_date", "event_session_id", "category", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_type = db.Column(db.String(16), nullable=False, default="income")  # income, expense
    category = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    transaction_date = db.Column(db.Date, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_type": self.transaction_type,
            "category": self.category,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "transaction_date": to_iso_date(self.transaction_date),
            "user_id": self.user_id,
            "event_session_id": self.event_session_id,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "created_at": to_utc_z(self.created_at),
        }


class AuditLog(db.Model):
    """Administrative action trail. Best effort: never blocks the action itself."""
    __tablename__ = "logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    user_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    details = db.Column(db.Text, nullable=True)
    event_session_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "user_id": self.user_id,
            "action": self.action,
            "details": self.details,
            "event_session_id": self.event_session_id,
        }

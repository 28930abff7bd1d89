from __future__ import annotations

from ..extensions import db
from ticketdesk.time_utils import to_utc_z, to_iso_date


class EventSession(db.Model):
    """
    Operating period (one exhibition run) that partitions all stock,
    distributions and cash settlements.

    Only one session is active (writable) at a time. Archived sessions stay
    readable for reports but every ticketing write against them is rejected.
    """
    __tablename__ = "event_sessions"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_event_sessions_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<EventSession id={self.id} name={self.name!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

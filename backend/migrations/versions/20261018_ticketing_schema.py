"""Ticket stock, distribution, settlement and accounting tables

Revision ID: 20261018_ticketing_schema
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_ticketing_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)


def upgrade():
    op.create_table(
        "event_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_event_sessions_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("event_sessions", schema=None) as batch_op:
        batch_op.create_index("ix_event_sessions_is_active", ["is_active"], unique=False)

    op.create_table(
        "booking_staff",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("role", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_booking_staff_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "rides",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("rate_cents", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_rides_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("rides", schema=None) as batch_op:
        batch_op.create_index("ix_rides_is_active", ["is_active"], unique=False)

    op.create_table(
        "ticket_stock",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_session_id", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(32), nullable=False),
        sa.Column("start_number", sa.Integer(), nullable=False),
        sa.Column("end_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="Available"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["event_session_id"], ["event_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_number <= end_number", name="ck_ticket_stock_range"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("ticket_stock", schema=None) as batch_op:
        batch_op.create_index("ix_ticket_stock_event_session_id", ["event_session_id"], unique=False)
        batch_op.create_index("ix_ticket_stock_status", ["status"], unique=False)
        batch_op.create_index("ix_ticket_stock_session_status", ["event_session_id", "status"], unique=False)
        batch_op.create_index(
            "ix_ticket_stock_session_color_range",
            ["event_session_id", "color", "start_number", "end_number"],
            unique=False,
        )

    op.create_table(
        "ticket_distributions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_session_id", sa.Integer(), nullable=False),
        sa.Column("staff_id", sa.Integer(), nullable=True),
        sa.Column("ride_id", sa.Integer(), nullable=False),
        sa.Column("stock_id", sa.Integer(), nullable=True),
        sa.Column("distribution_date", sa.Date(), nullable=False),
        sa.Column("distributed_start_number", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("distributed_end_number", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="Distributed"),
        sa.Column("returned_start_number", sa.Integer(), nullable=True),
        sa.Column("settlement_date", sa.Date(), nullable=True),
        sa.Column("tickets_sold", sa.Integer(), nullable=True),
        sa.Column("rate_cents", sa.Integer(), nullable=True),
        sa.Column("calculated_revenue_cents", sa.Integer(), nullable=True),
        sa.Column("cash_cents", sa.Integer(), nullable=True),
        sa.Column("electronic_cents", sa.Integer(), nullable=True),
        sa.Column("settled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["event_session_id"], ["event_sessions.id"]),
        sa.ForeignKeyConstraint(["staff_id"], ["booking_staff.id"]),
        sa.ForeignKeyConstraint(["ride_id"], ["rides.id"]),
        sa.ForeignKeyConstraint(["stock_id"], ["ticket_stock.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("ticket_distributions", schema=None) as batch_op:
        batch_op.create_index("ix_ticket_distributions_event_session_id", ["event_session_id"], unique=False)
        batch_op.create_index("ix_ticket_distributions_staff_id", ["staff_id"], unique=False)
        batch_op.create_index("ix_ticket_distributions_ride_id", ["ride_id"], unique=False)
        batch_op.create_index("ix_ticket_distributions_stock_id", ["stock_id"], unique=False)
        batch_op.create_index("ix_ticket_distributions_status", ["status"], unique=False)
        batch_op.create_index("ix_ticket_distributions_settlement_date", ["settlement_date"], unique=False)
        batch_op.create_index("ix_ticket_dist_session_status", ["event_session_id", "status"], unique=False)
        batch_op.create_index(
            "ix_ticket_dist_staff_settlement",
            ["staff_id", "event_session_id", "settlement_date"],
            unique=False,
        )

    op.create_table(
        "staff_settlements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("event_session_id", sa.Integer(), nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("expected_cents", sa.Integer(), nullable=False),
        sa.Column("actual_cents", sa.Integer(), nullable=False),
        sa.Column("difference_cents", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="unsettled"),
        sa.Column("settled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("settled_on_date", sa.Date(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["staff_id"], ["booking_staff.id"]),
        sa.ForeignKeyConstraint(["event_session_id"], ["event_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("staff_settlements", schema=None) as batch_op:
        batch_op.create_index("ix_staff_settlements_session_status", ["event_session_id", "status"], unique=False)
        batch_op.create_index("ix_staff_settlements_staff_session", ["staff_id", "event_session_id"], unique=False)

    op.create_table(
        "accounting_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False, server_default="income"),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("event_session_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["event_session_id"], ["event_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("accounting_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_accounting_transactions_category", ["category"], unique=False)
        batch_op.create_index("ix_acctx_reference", ["reference_type", "reference_id"], unique=False)
        batch_op.create_index(
            "ix_acctx_session_category_date",
            ["event_session_id", "category", "transaction_date"],
            unique=False,
        )

    op.create_table(
        "logs",
        sa.Column("id", sa.Integer(), nullable=False),
        _timestamp("timestamp"),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("event_session_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("logs", schema=None) as batch_op:
        batch_op.create_index("ix_logs_timestamp", ["timestamp"], unique=False)
        batch_op.create_index("ix_logs_action", ["action"], unique=False)


def downgrade():
    with op.batch_alter_table("logs", schema=None) as batch_op:
        batch_op.drop_index("ix_logs_action")
        batch_op.drop_index("ix_logs_timestamp")
    op.drop_table("logs")

    op.drop_table("accounting_transactions")
    op.drop_table("staff_settlements")
    op.drop_table("ticket_distributions")
    op.drop_table("ticket_stock")
    op.drop_table("rides")
    op.drop_table("booking_staff")
    op.drop_table("event_sessions")

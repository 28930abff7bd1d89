# Overview: Pytest coverage for the status lifecycle guards on stock, distributions and cash records.

from datetime import date

import pytest

from ticketdesk.models import (
    TicketStock, TicketDistribution, StockStatus, DistributionStatus,
    STOCK_TRANSITIONS, DISTRIBUTION_TRANSITIONS,
)
from ticketdesk.errors import InvalidTransition


class TestStockLifecycle:

    def test_new_bundle_must_start_available(self, db_session):
        with pytest.raises(InvalidTransition):
            TicketStock(price_cents=100, color="Red", start_number=1, end_number=2, status=StockStatus.SETTLED)

    def test_available_cannot_jump_to_settled(self, db_session, bundle):
        with pytest.raises(InvalidTransition):
            bundle.mark_settled()
        assert bundle.status is StockStatus.AVAILABLE

    def test_cancelled_is_terminal(self, db_session, bundle):
        bundle.retire()
        for target in StockStatus:
            with pytest.raises(InvalidTransition):
                bundle.status = target
        db_session.rollback()

    def test_raw_status_strings_are_guarded(self, db_session, bundle):
        with pytest.raises(InvalidTransition):
            bundle.status = "Settled"

    def test_check_edge(self):
        TicketStock.check_edge("Available", "Distributed")
        with pytest.raises(InvalidTransition):
            TicketStock.check_edge("Settled", "Available")

    def test_every_status_has_an_entry(self):
        assert set(StockStatus) <= set(STOCK_TRANSITIONS)
        assert set(DistributionStatus) <= set(DISTRIBUTION_TRANSITIONS)


class TestDistributionLifecycle:

    def test_cancelled_cannot_settle(self, db_session, distribution):
        distribution.cancel()
        with pytest.raises(InvalidTransition):
            distribution.settle(
                returned_start_number=10,
                settlement_date=date(2026, 7, 2),
                tickets_sold=9,
                rate_cents=1000,
                calculated_revenue_cents=9000,
                cash_cents=9000,
                electronic_cents=0,
                settled_by_user_id=None,
                settled_at=None,
            )
        db_session.rollback()

    def test_distributed_cannot_unsettle(self, db_session, distribution):
        with pytest.raises(InvalidTransition):
            distribution.unsettle()

    def test_check_edge(self):
        TicketDistribution.check_edge("Settled", "Distributed")
        with pytest.raises(InvalidTransition):
            TicketDistribution.check_edge("Cancelled", "Distributed")

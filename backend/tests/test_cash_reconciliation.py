# Overview: Pytest coverage for staff cash reconciliation: expected cash, short/excess records and clearing.

from datetime import date

import pytest

from ticketdesk.models import StaffSettlement, CashSettlementStatus
from ticketdesk.errors import NotFound, InvalidTransition, ArchivedScope
from ticketdesk.validation import ValidationError
from ticketdesk.services import (
    cash_reconciliation_service as cash, settlement_service, distribution_service, stock_service,
    scope_service,
)


DIST_DATE = date(2026, 7, 2)


@pytest.fixture
def settled(db_session, distribution):
    """Dana sold 60 tickets at 10.00, 200.00 electronic: 400.00 cash expected."""
    settlement_service.settle_distribution(
        distribution.id, 61, scope_id=distribution.event_session_id, electronic_cents=20000,
    )
    return distribution


def _settle_another(scope, staff, ride, start, sold, on):
    bundle = stock_service.create_bundle(scope.id, 1000, "Blue", start, start + 49)
    dist = distribution_service.distribute(scope.id, staff.id, ride.id, bundle.id, on)
    settlement_service.settle_distribution(dist.id, start + sold, scope_id=scope.id)
    return dist


class TestComputeExpected:

    def test_sums_cash_from_settled_distributions(self, db_session, scope, staff, settled):
        assert cash.compute_expected(staff.id, scope.id) == 40000

    def test_open_distributions_do_not_count(self, db_session, scope, staff, distribution):
        assert cash.compute_expected(staff.id, scope.id) == 0

    def test_other_staff_not_counted(self, db_session, scope, other_staff, settled):
        assert cash.compute_expected(other_staff.id, scope.id) == 0

    def test_as_of_bounds_the_window(self, db_session, scope, staff, ride, settled):
        _settle_another(scope, staff, ride, 1, 5, date(2026, 7, 5))

        assert cash.compute_expected(staff.id, scope.id, as_of=date(2026, 7, 3)) == 40000
        assert cash.compute_expected(staff.id, scope.id) == 45000

    def test_window_starts_after_last_cleared_settlement(self, db_session, scope, staff, ride, settled):
        record = cash.record_settlement(staff.id, scope.id, 40000, 39000, settlement_date=DIST_DATE)
        cash.clear_batch([record.id], user_id=1, cleared_on=DIST_DATE)

        assert cash.compute_expected(staff.id, scope.id) == 0

        _settle_another(scope, staff, ride, 1, 3, date(2026, 7, 3))
        assert cash.compute_expected(staff.id, scope.id) == 3000

    def test_window_keys_on_record_date_not_clearing_date(self, db_session, scope, staff, ride, settled):
        record = cash.record_settlement(staff.id, scope.id, 40000, 39000, settlement_date=date(2026, 7, 3))
        _settle_another(scope, staff, ride, 1, 5, date(2026, 7, 5))
        cash.clear_batch([record.id], user_id=1, cleared_on=date(2026, 7, 10))

        assert cash.compute_expected(staff.id, scope.id, as_of=date(2026, 7, 12)) == 5000

    def test_unsettled_records_do_not_move_the_window(self, db_session, scope, staff, settled):
        cash.record_settlement(staff.id, scope.id, 40000, 39000, settlement_date=DIST_DATE)
        assert cash.compute_expected(staff.id, scope.id) == 40000


class TestRecordSettlement:

    def test_short_is_negative_difference(self, db_session, scope, staff):
        record = cash.record_settlement(staff.id, scope.id, 500000, 480000, "counted twice")

        assert record.difference_cents == -20000
        assert record.status is CashSettlementStatus.UNSETTLED
        assert record.notes == "counted twice"

    def test_excess_is_positive_difference(self, db_session, scope, staff):
        record = cash.record_settlement(staff.id, scope.id, 10000, 12500)
        assert record.difference_cents == 2500

    def test_matching_cash_records_nothing(self, db_session, scope, staff):
        assert cash.record_settlement(staff.id, scope.id, 40000, 40000) is None
        assert db_session.query(StaffSettlement).count() == 0

    def test_negative_actual_rejected(self, db_session, scope, staff):
        with pytest.raises(ValidationError):
            cash.record_settlement(staff.id, scope.id, 40000, -1)

    def test_unknown_staff(self, db_session, scope):
        with pytest.raises(NotFound):
            cash.record_settlement(999999, scope.id, 100, 50)


class TestClearBatch:

    def test_clears_unsettled_records(self, db_session, scope, staff, other_staff):
        a = cash.record_settlement(staff.id, scope.id, 500000, 480000)
        b = cash.record_settlement(other_staff.id, scope.id, 1000, 1500)

        cleared = cash.clear_batch([a.id, b.id], user_id=7, cleared_on=date(2026, 7, 10))

        assert sorted(r.id for r in cleared) == sorted([a.id, b.id])
        for record in (a, b):
            db_session.refresh(record)
            assert record.status is CashSettlementStatus.SETTLED
            assert record.settled_by_user_id == 7
            assert record.settled_on_date == date(2026, 7, 10)

    def test_clearing_is_idempotent(self, db_session, scope, staff):
        record = cash.record_settlement(staff.id, scope.id, 500000, 480000)
        cash.clear_batch([record.id], user_id=7, cleared_on=date(2026, 7, 10))

        again = cash.clear_batch([record.id], user_id=8, cleared_on=date(2026, 7, 11))

        assert again == []
        db_session.refresh(record)
        assert record.settled_by_user_id == 7
        assert record.settled_on_date == date(2026, 7, 10)

    def test_unknown_ids_ignored(self, db_session):
        assert cash.clear_batch([999999], user_id=1) == []

    def test_archived_session_records_cannot_be_cleared(self, db_session, scope, staff):
        record = cash.record_settlement(staff.id, scope.id, 100, 50)
        scope_service.create_scope("Winter Fair 2026", date(2026, 12, 1), activate=True)

        with pytest.raises(ArchivedScope):
            cash.clear_batch([record.id], user_id=1)

        db_session.refresh(record)
        assert record.status is CashSettlementStatus.UNSETTLED

    def test_cleared_record_cannot_reopen(self, db_session, scope, staff):
        record = cash.record_settlement(staff.id, scope.id, 100, 50)
        cash.clear_batch([record.id], user_id=1)
        db_session.refresh(record)

        with pytest.raises(InvalidTransition):
            record.status = CashSettlementStatus.UNSETTLED


class TestReview:

    def test_unsettled_totals_per_staff(self, db_session, scope, staff, other_staff):
        cash.record_settlement(staff.id, scope.id, 500000, 480000)
        cash.record_settlement(staff.id, scope.id, 1000, 1500)
        cleared = cash.record_settlement(other_staff.id, scope.id, 1000, 900)
        cash.clear_batch([cleared.id], user_id=1)

        totals = cash.unsettled_totals(scope.id)

        assert totals == [{"staff_id": staff.id, "staff_name": "Dana", "total_unsettled_cents": -19500}]

    def test_review_groups_by_staff_name(self, db_session, scope, staff, other_staff):
        cash.record_settlement(other_staff.id, scope.id, 1000, 900)
        cash.record_settlement(staff.id, scope.id, 1000, 1200)
        cash.record_settlement(staff.id, scope.id, 1000, 700)

        review = cash.review_unsettled(scope.id)

        assert list(review.keys()) == ["Dana", "Sam"]
        assert review["Dana"]["total_difference_cents"] == -100
        assert len(review["Dana"]["transactions"]) == 2
        assert review["Sam"]["total_difference_cents"] == -100

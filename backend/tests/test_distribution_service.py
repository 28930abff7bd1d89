# Overview: Pytest coverage for handing bundles to staff, cancellation, edits and the distribute race.

from datetime import date

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session

from ticketdesk.extensions import db
from ticketdesk.models import TicketStock, TicketDistribution, StockStatus, DistributionStatus
from ticketdesk.errors import NotAvailable, NotFound, StaffOrRateNotFound, AlreadySettled, ArchivedScope
from ticketdesk.services import distribution_service, stock_service, rate_service, settlement_service
from ticketdesk.services import concurrency


DIST_DATE = date(2026, 7, 2)


class TestDistribute:

    def test_freezes_bundle_range(self, db_session, distribution, bundle):
        assert distribution.status is DistributionStatus.DISTRIBUTED
        assert distribution.distributed_start_number == 1
        assert distribution.distributed_end_number == 100
        assert distribution.stock_id == bundle.id

        db_session.refresh(bundle)
        assert bundle.status is StockStatus.DISTRIBUTED

    def test_bundle_cannot_be_distributed_twice(self, db_session, scope, distribution, other_staff, ride):
        with pytest.raises(NotAvailable):
            distribution_service.distribute(scope.id, other_staff.id, ride.id, distribution.stock_id, DIST_DATE)
        assert db_session.query(TicketDistribution).count() == 1

    def test_unknown_bundle(self, db_session, scope, staff, ride):
        with pytest.raises(NotFound):
            distribution_service.distribute(scope.id, staff.id, ride.id, 999999, DIST_DATE)

    def test_unknown_staff(self, db_session, scope, ride, bundle):
        with pytest.raises(StaffOrRateNotFound):
            distribution_service.distribute(scope.id, 999999, ride.id, bundle.id, DIST_DATE)

    def test_inactive_staff(self, db_session, scope, staff, ride, bundle):
        staff.is_active = False
        db_session.commit()
        with pytest.raises(StaffOrRateNotFound):
            distribution_service.distribute(scope.id, staff.id, ride.id, bundle.id, DIST_DATE)

    def test_inactive_ride(self, db_session, scope, staff, ride, bundle):
        rate_service.toggle_ride_active(ride.id)
        with pytest.raises(StaffOrRateNotFound):
            distribution_service.distribute(scope.id, staff.id, ride.id, bundle.id, DIST_DATE)

        db_session.refresh(bundle)
        assert bundle.status is StockStatus.AVAILABLE

    def test_archived_scope(self, db_session, archived_scope, staff, ride):
        with pytest.raises(ArchivedScope):
            distribution_service.distribute(archived_scope.id, staff.id, ride.id, 1, DIST_DATE)

    def test_price_mismatch_is_allowed(self, db_session, scope, staff, ride):
        cheap = stock_service.create_bundle(scope.id, 500, "Green", 1, 10)
        dist = distribution_service.distribute(scope.id, staff.id, ride.id, cheap.id, DIST_DATE)
        assert dist.stock_id == cheap.id


class TestDistributeRace:
    """Two requests racing for the same Available bundle."""

    def test_compare_and_swap_has_one_winner(self, db_session, bundle):
        first = concurrency.compare_and_swap_status(
            bundle, expected=StockStatus.AVAILABLE, new=StockStatus.DISTRIBUTED,
        )
        second = concurrency.compare_and_swap_status(
            bundle, expected=StockStatus.AVAILABLE, new=StockStatus.DISTRIBUTED,
        )
        db_session.commit()

        assert first is True
        assert second is False
        assert bundle.status is StockStatus.DISTRIBUTED

    def test_loser_gets_not_available(self, db_session, monkeypatch, scope, staff, ride, bundle):
        real_cas = stock_service.compare_and_swap_status

        def _cas_after_competitor(instance, *, expected, new):
            # Another request flips the row between our read and our write
            db.session.execute(
                update(TicketStock)
                .where(TicketStock.id == instance.id)
                .values(status=StockStatus.DISTRIBUTED)
                .execution_options(synchronize_session=False)
            )
            return real_cas(instance, expected=expected, new=new)

        monkeypatch.setattr(stock_service, "compare_and_swap_status", _cas_after_competitor)

        with pytest.raises(NotAvailable):
            distribution_service.distribute(scope.id, staff.id, ride.id, bundle.id, DIST_DATE)
        assert db_session.query(TicketDistribution).count() == 0

    def test_conditional_update_across_connections(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
        db.metadata.create_all(engine)
        try:
            with Session(engine) as setup:
                setup.add(TicketStock(
                    event_session_id=1, price_cents=1000, color="Red",
                    start_number=1, end_number=100, status=StockStatus.AVAILABLE,
                ))
                setup.commit()

            with Session(engine) as first, Session(engine) as second:
                mine = first.query(TicketStock).one()
                theirs = second.query(TicketStock).one()
                assert mine.status is theirs.status is StockStatus.AVAILABLE

                assert concurrency.compare_and_swap_status(
                    mine, expected=StockStatus.AVAILABLE, new=StockStatus.DISTRIBUTED, session=first,
                ) is True
                first.commit()

                assert concurrency.compare_and_swap_status(
                    theirs, expected=StockStatus.AVAILABLE, new=StockStatus.DISTRIBUTED, session=second,
                ) is False
                second.rollback()
                assert second.get(TicketStock, theirs.id).status is StockStatus.DISTRIBUTED
        finally:
            engine.dispose()


class TestCancelAndDelete:

    def test_cancel_returns_bundle_to_shelf(self, db_session, distribution, bundle):
        cancelled = distribution_service.cancel_distribution(distribution.id, scope_id=distribution.event_session_id)

        assert cancelled.status is DistributionStatus.CANCELLED
        db_session.refresh(bundle)
        assert bundle.status is StockStatus.AVAILABLE

    def test_cancel_twice_rejected(self, db_session, distribution):
        distribution_service.cancel_distribution(distribution.id, scope_id=distribution.event_session_id)
        with pytest.raises(AlreadySettled):
            distribution_service.cancel_distribution(distribution.id, scope_id=distribution.event_session_id)

    def test_cancel_settled_rejected(self, db_session, distribution):
        settlement_service.settle_distribution(distribution.id, 51, scope_id=distribution.event_session_id)
        with pytest.raises(AlreadySettled):
            distribution_service.cancel_distribution(distribution.id, scope_id=distribution.event_session_id)

    def test_delete_removes_row_and_recalls_bundle(self, db_session, distribution, bundle):
        dist_id = distribution.id
        distribution_service.delete_distribution(dist_id, scope_id=bundle.event_session_id)

        assert db_session.get(TicketDistribution, dist_id) is None
        db_session.refresh(bundle)
        assert bundle.status is StockStatus.AVAILABLE

    def test_cancelled_bundle_can_be_redistributed(self, db_session, scope, distribution, other_staff, ride):
        distribution_service.cancel_distribution(distribution.id, scope_id=scope.id)
        again = distribution_service.distribute(scope.id, other_staff.id, ride.id, distribution.stock_id, DIST_DATE)
        assert again.status is DistributionStatus.DISTRIBUTED


class TestEdit:

    def test_switch_bundle(self, db_session, scope, distribution, bundle):
        replacement = stock_service.create_bundle(scope.id, 1000, "Red", 201, 250)

        edited = distribution_service.edit_distribution(distribution.id, scope_id=scope.id, bundle_id=replacement.id)

        assert edited.stock_id == replacement.id
        assert (edited.distributed_start_number, edited.distributed_end_number) == (201, 250)
        db_session.refresh(bundle)
        db_session.refresh(replacement)
        assert bundle.status is StockStatus.AVAILABLE
        assert replacement.status is StockStatus.DISTRIBUTED

    def test_switch_to_unavailable_bundle_rolls_back(self, db_session, scope, distribution, bundle, other_staff, ride):
        taken = stock_service.create_bundle(scope.id, 1000, "Red", 201, 250)
        distribution_service.distribute(scope.id, other_staff.id, ride.id, taken.id, DIST_DATE)

        with pytest.raises(NotAvailable):
            distribution_service.edit_distribution(distribution.id, scope_id=scope.id, bundle_id=taken.id)

        db_session.refresh(bundle)
        assert bundle.status is StockStatus.DISTRIBUTED
        db_session.refresh(distribution)
        assert distribution.stock_id == bundle.id

    def test_change_staff_and_date(self, db_session, scope, distribution, other_staff):
        edited = distribution_service.edit_distribution(
            distribution.id, scope_id=scope.id, staff_id=other_staff.id, distribution_date=date(2026, 7, 3),
        )
        assert edited.staff_id == other_staff.id
        assert edited.distribution_date == date(2026, 7, 3)

    def test_list_by_status(self, db_session, scope, distribution):
        assert [d.id for d in distribution_service.list_distributions(scope.id, status="Distributed")] == [distribution.id]
        assert distribution_service.list_distributions(scope.id, status="Settled") == []

# Overview: Pytest coverage for all-or-nothing CSV uploads of stock, distributions and legacy sales.

from datetime import date

import pytest

from ticketdesk.models import TicketStock, TicketDistribution, Ride, AccountingTransaction, AuditLog, StockStatus
from ticketdesk.errors import BulkImportError
from ticketdesk.validation import ValidationError
from ticketdesk.services import bulk_upload_service as bulk, stock_service


class TestBulkStock:

    def test_creates_every_row(self, db_session, scope):
        text = "10,Red,1,100\n\n5.50,Blue,1,50\n"
        bundles = bulk.bulk_create_stock(scope.id, text, user_id=1)

        assert [(b.color, b.price_cents, b.ticket_count) for b in bundles] == [("Red", 1000, 100), ("Blue", 550, 50)]

    def test_header_row_skipped(self, db_session, scope):
        bundles = bulk.bulk_create_stock(scope.id, "price,color,start,end\n10,Red,1,100\n")
        assert len(bundles) == 1

    def test_failing_row_rolls_back_batch(self, db_session, scope):
        text = "10,Red,1,100\n10,Red,50,150\n10,Blue,1,10\n"

        with pytest.raises(BulkImportError) as excinfo:
            bulk.bulk_create_stock(scope.id, text, user_id=1)

        assert excinfo.value.line_number == 2
        assert "Row 2" in str(excinfo.value)
        assert db_session.query(TicketStock).count() == 0
        assert db_session.query(AuditLog).filter_by(action="create_stock").count() == 0

    def test_incomplete_row(self, db_session, scope):
        with pytest.raises(BulkImportError) as excinfo:
            bulk.bulk_create_stock(scope.id, "10,Red,1,100\n10,Red,200\n")
        assert excinfo.value.line_number == 2

    def test_bad_number(self, db_session, scope):
        with pytest.raises(BulkImportError) as excinfo:
            bulk.bulk_create_stock(scope.id, "ten,Red,1,100\n")
        assert excinfo.value.line_number == 1

    def test_empty_upload(self, db_session, scope):
        with pytest.raises(ValidationError):
            bulk.bulk_create_stock(scope.id, "\n\n")

    def test_row_limit(self, db_session, app, scope, monkeypatch):
        monkeypatch.setitem(app.config, "BULK_UPLOAD_MAX_ROWS", 1)
        with pytest.raises(ValidationError):
            bulk.bulk_create_stock(scope.id, "10,Red,1,100\n10,Red,101,200\n")


class TestBulkDistribute:

    def test_distributes_by_start_serial(self, db_session, scope, staff, ride, bundle):
        dists = bulk.bulk_distribute(scope.id, "2026-07-02,Dana,Ferris Wheel,1\n")

        assert len(dists) == 1
        assert dists[0].stock_id == bundle.id
        assert dists[0].distribution_date == date(2026, 7, 2)
        db_session.refresh(bundle)
        assert bundle.status is StockStatus.DISTRIBUTED

    def test_stock_must_match_ride_rate(self, db_session, scope, staff, ride):
        stock_service.create_bundle(scope.id, 500, "Green", 1, 10)
        with pytest.raises(BulkImportError):
            bulk.bulk_distribute(scope.id, "2026-07-02,Dana,Ferris Wheel,1\n")

    def test_unknown_staff_rolls_back_earlier_rows(self, db_session, scope, staff, ride, bundle):
        second = stock_service.create_bundle(scope.id, 1000, "Red", 101, 200)
        text = "2026-07-02,Dana,Ferris Wheel,1\n2026-07-02,Nobody,Ferris Wheel,101\n"

        with pytest.raises(BulkImportError) as excinfo:
            bulk.bulk_distribute(scope.id, text)

        assert excinfo.value.line_number == 2
        assert db_session.query(TicketDistribution).count() == 0
        db_session.refresh(bundle)
        db_session.refresh(second)
        assert bundle.status is StockStatus.AVAILABLE
        assert second.status is StockStatus.AVAILABLE

    def test_same_bundle_twice_in_one_file(self, db_session, scope, staff, ride, bundle):
        text = "2026-07-02,Dana,Ferris Wheel,1\n2026-07-03,Dana,Ferris Wheel,1\n"
        with pytest.raises(BulkImportError) as excinfo:
            bulk.bulk_distribute(scope.id, text)
        assert excinfo.value.line_number == 2
        assert db_session.query(TicketDistribution).count() == 0

    def test_shared_start_serial_is_ambiguous(self, db_session, scope, staff, ride, bundle):
        blue = stock_service.create_bundle(scope.id, 1000, "Blue", 1, 100)

        with pytest.raises(BulkImportError) as excinfo:
            bulk.bulk_distribute(scope.id, "2026-07-02,Dana,Ferris Wheel,1\n")

        assert excinfo.value.line_number == 1
        assert "Red" in excinfo.value.reason and "Blue" in excinfo.value.reason
        db_session.refresh(bundle)
        db_session.refresh(blue)
        assert bundle.status is StockStatus.AVAILABLE
        assert blue.status is StockStatus.AVAILABLE

class TestBulkImportSales:

    def test_imports_and_creates_missing_rides(self, db_session, scope):
        text = "2025-08-01,Bumper Cars,8,120,100\n2025-08-02,Bumper Cars,8,30\n"
        sales = bulk.bulk_import_sales(scope.id, text)

        assert [s.tickets_sold for s in sales] == [120, 30]
        assert sales[0].calculated_revenue_cents == 96000
        assert sales[0].electronic_cents == 10000
        assert sales[0].cash_cents == 86000
        assert all(s.is_imported for s in sales)
        assert db_session.query(Ride).filter_by(name="Bumper Cars").count() == 1
        assert db_session.query(AccountingTransaction).count() == 2

    def test_failure_keeps_implicit_rides_out(self, db_session, scope):
        text = "2025-08-01,Bumper Cars,8,120\n2025-08-02,Ghost Train,8,-5\n"
        with pytest.raises(BulkImportError):
            bulk.bulk_import_sales(scope.id, text)

        assert db_session.query(Ride).count() == 0
        assert db_session.query(AccountingTransaction).count() == 0

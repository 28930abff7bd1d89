# Overview: Pytest coverage for event session switching, the staff directory and the ride catalog.

from datetime import date

import pytest

from ticketdesk.models import EventSession, Ride
from ticketdesk.errors import NotFound, ArchivedScope
from ticketdesk.validation import ValidationError, ConflictError
from ticketdesk.services import scope_service, staff_service, rate_service, settlement_service


class TestScopes:

    def test_only_one_active_scope(self, db_session, scope):
        later = scope_service.create_scope("Winter Fair 2026", date(2026, 12, 1))
        scope_service.activate_scope(later.id)

        active = db_session.query(EventSession).filter_by(is_active=True).all()
        assert [s.id for s in active] == [later.id]
        assert scope_service.get_active_scope().id == later.id

    def test_archived_scope_is_read_only(self, db_session, archived_scope):
        with pytest.raises(ArchivedScope):
            scope_service.require_writable_scope(archived_scope.id)

    def test_unknown_scope(self, db_session):
        with pytest.raises(NotFound):
            scope_service.require_writable_scope(424242)

    def test_duplicate_name(self, db_session, scope):
        with pytest.raises(ConflictError):
            scope_service.create_scope("Summer Fair 2026", date(2026, 7, 1))

    def test_end_before_start(self, db_session):
        with pytest.raises(ValidationError):
            scope_service.create_scope("Backwards", date(2026, 7, 10), date(2026, 7, 1))


class TestStaff:

    def test_duplicate_name(self, db_session, staff):
        with pytest.raises(ConflictError):
            staff_service.create_staff("Dana")

    def test_list_active_only(self, db_session, staff, other_staff):
        other_staff.is_active = False
        db_session.commit()
        assert [s.name for s in staff_service.list_staff(active_only=True)] == ["Dana"]


class TestRides:

    def test_toggle(self, db_session, ride):
        assert rate_service.toggle_ride_active(ride.id).is_active is False
        assert rate_service.toggle_ride_active(ride.id).is_active is True

    def test_duplicate_name(self, db_session, ride):
        with pytest.raises(ConflictError):
            rate_service.create_ride("Ferris Wheel", 500)

    def test_delete_unused_ride(self, db_session, ride):
        ride_id = ride.id
        rate_service.delete_ride(ride_id)
        assert db_session.get(Ride, ride_id) is None

    def test_delete_ride_in_use_refused(self, db_session, scope, ride):
        settlement_service.import_sale(scope.id, date(2025, 8, 1), ride.id, 1)
        with pytest.raises(ConflictError):
            rate_service.delete_ride(ride.id)

    def test_find_or_create_reuses_existing(self, db_session, ride):
        assert rate_service.find_or_create_ride("Ferris Wheel", 1).id == ride.id

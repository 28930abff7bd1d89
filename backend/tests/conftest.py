"""
Pytest fixtures for the ticketing backend tests.

Provides an in-memory database, a test client, and the reference data most
tests need: an active event session, a staff member, a ride and a bundle.
"""

from datetime import date

import pytest
from ticketdesk import create_app
from ticketdesk.extensions import db
from ticketdesk.services import scope_service, staff_service, rate_service, stock_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def scope(db_session):
    """Active event session."""
    return scope_service.create_scope("Summer Fair 2026", date(2026, 7, 1), date(2026, 7, 14), activate=True)


@pytest.fixture(scope='function')
def archived_scope(db_session, scope):
    """A past session; created after `scope` but left inactive."""
    return scope_service.create_scope("Summer Fair 2025", date(2025, 7, 1), date(2025, 7, 14))


@pytest.fixture(scope='function')
def staff(db_session):
    return staff_service.create_staff("Dana", phone="555-0100", role="booth")


@pytest.fixture(scope='function')
def other_staff(db_session):
    return staff_service.create_staff("Sam")


@pytest.fixture(scope='function')
def ride(db_session):
    """Ride priced at 10.00."""
    return rate_service.create_ride("Ferris Wheel", 1000)


@pytest.fixture(scope='function')
def bundle(scope):
    """Red tickets 1..100 at 10.00."""
    return stock_service.create_bundle(scope.id, 1000, "Red", 1, 100)


DIST_DATE = date(2026, 7, 2)


@pytest.fixture(scope='function')
def distribution(scope, staff, ride, bundle):
    from ticketdesk.services import distribution_service
    return distribution_service.distribute(scope.id, staff.id, ride.id, bundle.id, DIST_DATE)

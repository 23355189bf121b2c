"""
Pytest configuration and fixtures for the Guardforce staffing backend tests.

This module provides shared fixtures for:
- Flask application with test configuration
- Database setup and teardown
- Model factories for creating test data
"""
import pytest
from datetime import datetime, time

from guardforce import create_app
from guardforce.extensions import db as _db


@pytest.fixture(scope='session')
def app():
    """
    Create application for the tests.

    Uses TestingConfig with in-memory SQLite database.
    Scope is 'session' to reuse the same app across all tests.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RATELIMIT_ENABLED': False,
        'SUPERVISOR_ZONE_RELEASE_POLICY': 'retain',
    })

    return app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database for the tests.

    Creates all tables before each test function and drops them after.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def db_session(db):
    """The scoped session services are given in production"""
    return db.session


@pytest.fixture(scope='function')
def client(app, db):
    """
    Create a test client for the app.

    The client can be used to make requests to the application.
    """
    with app.test_client() as client:
        yield client


@pytest.fixture(scope='function')
def models(app, db):
    """Model classes registered by create_app()"""
    from guardforce.models import get_models
    return get_models()


# =============================================================================
# Model Factories
# =============================================================================

@pytest.fixture
def user_factory(models, db):
    """
    Factory for creating User instances.

    Usage:
        agent = user_factory()
        supervisor = user_factory(role='supervisor')
        inactive = user_factory(status='inactive')
    """
    counter = [0]

    def _create_user(**kwargs):
        User = models['User']
        counter[0] += 1
        defaults = {
            'first_name': 'Agent',
            'last_name': f'Test{counter[0]}',
            'email': f'user{counter[0]}@guardforce.test',
            'role': 'agent',
            'status': 'active',
        }
        defaults.update(kwargs)
        user = User(**defaults)
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def event_factory(models, db):
    """
    Factory for creating Event instances.

    Defaults to a one-day event on 2024-06-01, 08:00 to 18:00, with the
    standard 120 minute staffing buffer.
    """
    counter = [0]

    def _create_event(**kwargs):
        Event = models['Event']
        counter[0] += 1
        defaults = {
            'name': f'Test Event {counter[0]}',
            'location': 'Stade Mohammed V',
            'start_date': datetime(2024, 6, 1),
            'end_date': datetime(2024, 6, 1),
            'check_in_time': time(8, 0),
            'check_out_time': time(18, 0),
            'agent_creation_buffer': 120,
            'status': 'scheduled',
        }
        defaults.update(kwargs)
        event = Event(**defaults)
        db.session.add(event)
        db.session.commit()
        return event

    return _create_event


@pytest.fixture
def zone_factory(models, db, event_factory):
    """
    Factory for creating Zone instances.

    Creates an event if none is given.
    """
    counter = [0]

    def _create_zone(event=None, **kwargs):
        Zone = models['Zone']
        counter[0] += 1
        if event is None:
            event = event_factory()
        defaults = {
            'event_id': event.id,
            'name': f'Zone {counter[0]}',
            'required_agents': 2,
            'required_supervisors': 1,
        }
        defaults.update(kwargs)
        zone = Zone(**defaults)
        db.session.add(zone)
        db.session.commit()
        return zone

    return _create_zone


@pytest.fixture
def assignment_factory(models, db, user_factory, event_factory):
    """
    Factory for creating Assignment rows directly (bypassing the manager).

    Usage:
        assignment = assignment_factory(agent=agent, event=event, status='confirmed')
    """
    def _create_assignment(agent=None, event=None, zone=None, **kwargs):
        Assignment = models['Assignment']
        if agent is None:
            agent = user_factory()
        if event is None:
            event = zone.event if zone is not None else event_factory()
        defaults = {
            'agent_id': agent.id,
            'event_id': event.id,
            'zone_id': zone.id if zone is not None else None,
            'role': 'primary',
            'status': 'pending',
        }
        defaults.update(kwargs)
        assignment = Assignment(**defaults)
        db.session.add(assignment)
        db.session.commit()
        return assignment

    return _create_assignment


# =============================================================================
# Helper Fixtures
# =============================================================================

@pytest.fixture
def admin_user(user_factory):
    return user_factory(first_name='Admin', last_name='Root', role='admin')


@pytest.fixture
def auth_headers():
    """Build the headers the upstream auth layer forwards"""
    def _headers(user):
        return {'X-User-Id': user.id}
    return _headers

"""
Pytest configuration and fixtures for scouting service tests.
"""
import os
import sys
from datetime import datetime

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from scouting.app import create_app
from scouting.auth import hash_password, issue_token
from scouting.models import db, Realm, User, Event, Match
from shared.roles import Roles


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')

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
    """Create database session for testing."""
    with app.app_context():
        # Clear all tables before each test
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture
def realms(app, db_session):
    """Three realms: two private, one sharing its reports."""
    with app.app_context():
        created = {
            'private': Realm(name='Pigmice', share_reports=False),
            'other': Realm(name='Cheesy Poofs', share_reports=False),
            'sharing': Realm(name='Open Alliance', share_reports=True),
        }
        db.session.add_all(created.values())
        db.session.commit()
        return {name: realm.id for name, realm in created.items()}


@pytest.fixture
def make_user(app, db_session):
    """Factory creating users directly in the database."""
    def factory(username, realm_id, roles=None, password='password123'):
        with app.app_context():
            user = User(
                username=username,
                hashed_password=hash_password(password),
                realm_id=realm_id,
                first_name='First',
                last_name='Last',
                stars=[]
            )
            user.roles = roles or Roles()
            db.session.add(user)
            db.session.commit()
            return user.id
    return factory


@pytest.fixture
def users(realms, make_user):
    """One user of each role level in the private realm, plus outsiders."""
    return {
        'plain': make_user('plainuser', realms['private']),
        'verified': make_user('verified', realms['private'], Roles(is_verified=True)),
        'admin': make_user('realmadmin', realms['private'], Roles(is_admin=True)),
        'super': make_user('superadmin', realms['other'], Roles(is_super_admin=True)),
        'outsider': make_user('outsider', realms['other']),
        'other_admin': make_user('otheradmin', realms['other'], Roles(is_admin=True)),
        'sharer': make_user('sharer', realms['sharing']),
    }


@pytest.fixture
def auth_headers(app):
    """Build an Authorization header for a stored user."""
    def factory(user_id):
        with app.app_context():
            user = db.session.get(User, user_id)
            return {'Authorization': f'Bearer {issue_token(user)}'}
    return factory


@pytest.fixture
def sample_match(app, db_session):
    """An event with one qualification match."""
    with app.app_context():
        event = Event(
            key='2024casd',
            name='San Diego',
            start_date=datetime(2024, 3, 1),
            end_date=datetime(2024, 3, 3),
            webcasts=[]
        )
        match = Match(key='2024casd_qm1', event_key='2024casd')
        db.session.add_all([event, match])
        db.session.commit()
        return match.key

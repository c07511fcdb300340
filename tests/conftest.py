import os
import sys
import pytest

# Add parent directory to path so we can import app and config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from hackscan.modules.scan_models import ModeConfig


@pytest.fixture
def app(tmp_path):
    """Create a test Flask app backed by a temporary database file"""
    flask_app = create_app('testing', {
        'DATABASE_PATH': str(tmp_path / 'hackscan_test.db'),
    })
    yield flask_app
    flask_app.extensions['hackscan']['db'].close_all_connections()


@pytest.fixture
def client(app):
    """Create a test client for the app"""
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions['hackscan']


@pytest.fixture
def db(services):
    return services['db']


@pytest.fixture
def team(services):
    result = services['teams'].create({'name': 'Null Pointers'}, created_by='admin')
    assert result['success'], result
    return result['team']


@pytest.fixture
def lab_a(services):
    result = services['labs'].create({'name': 'Lab A'})
    assert result['success'], result
    return result['lab']


@pytest.fixture
def lab_b(services):
    result = services['labs'].create({'name': 'Lab B'})
    assert result['success'], result
    return result['lab']


@pytest.fixture
def make_participant(services, team):
    """Factory for participants in a given lab"""
    def _make(name, email, lab):
        result = services['participants'].create_participant({
            'name': name,
            'email': email,
            'teamId': team['id'],
            'labId': lab['id'],
        })
        assert result['success'], result
        return result['participant']
    return _make


@pytest.fixture
def participant(make_participant, lab_a):
    return make_participant('Ada Lovelace', 'ada@example.com', lab_a)


@pytest.fixture
def volunteer(services):
    """A volunteer with a badge token already issued"""
    created = services['volunteers'].create_volunteer({
        'firstName': 'Grace',
        'lastName': 'Hopper',
        'email': 'grace@example.com',
        'organization': 'Crew',
    })
    assert created['success'], created
    issued = services['volunteers'].generate_volunteer_qr(created['volunteer']['id'])
    assert issued['success'], issued
    return issued['volunteer']


@pytest.fixture
def meal_mode(services):
    """Switch the tracker into meal redemption"""
    def _set(meal_type, lab_ids, scanner_ids=None):
        config = services['mode_controller'].set_mode({
            'mode': 'MEAL',
            'selectedMealType': meal_type,
            'allowedLabIds': lab_ids,
            'allowedScannerIds': scanner_ids or [],
        })
        assert isinstance(config, ModeConfig), config
        return config
    return _set

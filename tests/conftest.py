from datetime import datetime, timedelta, timezone

import pytest

from meeting_attendance import create_app

ADMIN_EMAIL = 'admin@example.org'
ADMIN_PASSWORD = 'admin-pass'
MEMBER_PASSWORD = 'member-pass'


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


def resolve_stub(ip):
    return f'Resolved {ip}'


@pytest.fixture
def app(tmp_path):
    app = create_app('testing', config_overrides={
        'DATABASE_PATH': str(tmp_path / 'attendance.db'),
        'ADMIN_NAME': 'Admin',
        'ADMIN_EMAIL': ADMIN_EMAIL,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
    }, location_resolver=resolve_stub)
    yield app
    app.extensions['meeting_attendance']['db_manager'].close_all_connections()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def managers(app):
    return app.extensions['meeting_attendance']


@pytest.fixture
def make_member(managers):
    def _make_member(email, role='member', name=None, password=MEMBER_PASSWORD):
        result = managers['auth_manager'].create_member(
            name or email.split('@')[0].title(), email, password, role=role
        )
        assert result['success'], result
        return result['member']
    return _make_member


@pytest.fixture
def login(client):
    def _login(email, password=MEMBER_PASSWORD, ip='127.0.0.1'):
        response = client.post(
            '/api/auth/login',
            json={'email': email, 'password': password},
            headers={'X-Forwarded-For': ip}
        )
        assert response.status_code == 200, response.get_json()
        return response.get_json()['token']
    return _login


@pytest.fixture
def admin_token(login):
    return login(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def make_meeting(managers):
    def _make_meeting(start=None, end=None, **fields):
        now = datetime.now(timezone.utc)
        data = {
            'title': fields.pop('title', 'General Body Meeting'),
            'type': fields.pop('type', 'offline'),
            'start_time': (start or now - timedelta(hours=1)).isoformat(),
            'end_time': (end or now + timedelta(hours=1)).isoformat(),
        }
        data.update(fields)
        result = managers['meeting_manager'].create_meeting(data)
        assert result['success'], result
        return result['meeting']
    return _make_meeting

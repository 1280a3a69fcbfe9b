"""Test authentication endpoints."""
import json

import pytest
from flask_jwt_extended import create_access_token

from campus_attendance.models.user import UserRole
from conftest import make_user


@pytest.fixture
def sample_user(app):
    """Create sample user for testing."""
    return make_user('test@example.com', UserRole.STUDENT, name='Test User', roll_number='CSE5A050')


def login(client, email='test@example.com', password='password123'):
    return client.post('/api/auth/login', json={'email': email, 'password': password})


def test_health_check(client):
    """Test auth health endpoint."""
    response = client.get('/api/auth/health')
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['message'] == 'Auth service is running'


def test_app_health(client):
    response = client.get('/health')
    assert json.loads(response.data)['status'] == 'healthy'


def test_login_success(client, sample_user):
    """Test successful login."""
    response = login(client)

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['error'] is False
    assert 'access_token' in data['data']
    assert 'refresh_token' in data['data']
    assert data['data']['user']['email'] == 'test@example.com'
    assert 'password_hash' not in data['data']['user']
    assert 'face_encoding' not in data['data']['user']


def test_login_is_case_insensitive_on_email(client, sample_user):
    assert login(client, email='  TEST@example.com ').status_code == 200


def test_login_invalid_credentials(client, sample_user):
    """Test login with invalid credentials."""
    response = login(client, password='wrongpassword')

    assert response.status_code == 401
    assert json.loads(response.data)['message'] == 'Invalid email or password'


def test_login_validation(client):
    assert client.post('/api/auth/login', json={}).status_code == 400
    assert login(client, email='not-an-email').status_code == 401


def test_login_inactive_account(client, sample_user):
    sample_user.is_active = False
    sample_user.save()

    response = login(client)

    assert response.status_code == 401
    assert json.loads(response.data)['message'] == 'Account is deactivated'


def test_get_current_user(client, sample_user):
    """Test get current user profile."""
    token = json.loads(login(client).data)['data']['access_token']

    response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['error'] is False
    assert data['data']['email'] == 'test@example.com'
    assert data['data']['role'] == 'student'
    assert data['data']['has_face_registered'] is False


def test_me_requires_token(client):
    response = client.get('/api/auth/me')

    assert response.status_code == 401
    assert json.loads(response.data)['message'] == 'Authorization token required'


def test_me_with_garbage_token(client):
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not.a.token'})

    assert response.status_code == 401


def test_me_unknown_user(client, app):
    token = create_access_token(identity='999')
    response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 404


def test_refresh_token(client, sample_user):
    refresh = json.loads(login(client).data)['data']['refresh_token']

    response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh}'})

    assert response.status_code == 200
    assert 'access_token' in json.loads(response.data)['data']


def test_refresh_rejects_access_token(client, sample_user):
    access = json.loads(login(client).data)['data']['access_token']

    response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {access}'})

    assert response.status_code == 401

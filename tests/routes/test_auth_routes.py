import pytest
from pydantic import ValidationError

from pestcontrol.auth import jwt_handler, passwords
from pestcontrol.routes.auth_routes import RegisterRequest


def test_register_request_normalizes_username() -> None:
    request = RegisterRequest(username=' Dispatch ', password='long enough', name=' Front Desk ')

    assert request.username == 'dispatch'
    assert request.name == 'Front Desk'


def test_register_request_rejects_short_password() -> None:
    with pytest.raises(ValidationError):
        RegisterRequest(username='dispatch', password='short', name='Front Desk')


def test_password_hash_round_trip() -> None:
    hashed = passwords.hash_password('correct horse')

    assert hashed != 'correct horse'
    assert passwords.verify_password('correct horse', hashed)
    assert not passwords.verify_password('wrong horse', hashed)
    assert not passwords.verify_password('anything', '')


def test_register_then_login_and_fetch_profile(client) -> None:
    registered = client.post(
        '/api/auth/register',
        json={'username': 'Tech1', 'password': 'bug-free-home', 'name': 'Field Tech'},
    )
    assert registered.status_code == 201
    assert jwt_handler.decode_access_token(registered.json()['access_token'])['sub'] == 'tech1'

    login = client.post('/api/auth/login', json={'username': 'tech1', 'password': 'bug-free-home'})
    assert login.status_code == 200

    profile = client.get('/api/auth/me', headers={'Authorization': f"Bearer {login.json()['access_token']}"})
    assert profile.status_code == 200
    assert profile.json()['username'] == 'tech1'
    assert profile.json()['role'] == 'admin'


def test_register_rejects_duplicate_username(client, staff_user) -> None:
    response = client.post(
        '/api/auth/register',
        json={'username': staff_user.username, 'password': 'another-pass', 'name': 'Copy'},
    )

    assert response.status_code == 409


def test_login_rejects_wrong_password(client, staff_user) -> None:
    response = client.post('/api/auth/login', json={'username': staff_user.username, 'password': 'nope-nope'})

    assert response.status_code == 401


def test_me_rejects_invalid_token(client) -> None:
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401
    assert response.json()['detail'] == 'Invalid token'


def test_me_rejects_token_for_unknown_user(client) -> None:
    token = jwt_handler.create_access_token(subject='ghost')

    response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 401
    assert response.json()['detail'] == 'User not found'

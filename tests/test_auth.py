import pytest

import config
import utils
from auth import TokenError, decode_token, generate_token


def test_register_stores_salted_hash_not_password(client):
    for email in ('a@example.com', 'b@example.com'):
        resp = client.post('/api/auth/register', json={'email': email, 'password': 'same-password'})
        assert resp.status_code == 201
        body = resp.get_json()
        assert body['message'] == 'User registered successfully'
        assert body['user']['email'] == email
        assert body['token']

    a = utils.get_user_by_email('a@example.com')
    b = utils.get_user_by_email('b@example.com')
    assert a['password'] != 'same-password'
    # Salted: same password, different hashes
    assert a['password'] != b['password']


def test_register_duplicate_email_rejected(client, register):
    register(email='dup@example.com')
    resp = client.post('/api/auth/register', json={'email': 'DUP@example.com ', 'password': 'other'})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'User already exists'


@pytest.mark.parametrize('payload', [
    {},
    {'email': 'x@example.com'},
    {'password': 'pw'},
    {'email': '', 'password': 'pw'},
    {'email': '   ', 'password': 'pw'},
    {'email': 42, 'password': 'pw'},
])
def test_register_missing_fields(client, payload):
    resp = client.post('/api/auth/register', json=payload)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Please enter all fields'


def test_login_returns_token_for_registered_user(client, register):
    user_id, _ = register(email='bob@example.com', password='hunter22')
    resp = client.post('/api/auth/login', json={'email': 'bob@example.com', 'password': 'hunter22'})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['message'] == 'Logged in successfully'
    assert body['user'] == {'id': user_id, 'email': 'bob@example.com'}
    assert decode_token(body['token']) == user_id


def test_login_failures_are_indistinguishable(client, register):
    register(email='carol@example.com', password='right-one')
    wrong_password = client.post('/api/auth/login', json={'email': 'carol@example.com', 'password': 'wrong'})
    unknown_email = client.post('/api/auth/login', json={'email': 'nobody@example.com', 'password': 'right-one'})
    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.get_json() == unknown_email.get_json() == {'message': 'Invalid credentials'}


def test_login_missing_fields(client):
    resp = client.post('/api/auth/login', json={'email': 'a@example.com'})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Please enter all fields'


def test_expired_token_rejected(monkeypatch):
    token = generate_token('abc')
    monkeypatch.setattr(config, 'TOKEN_MAX_AGE_SECONDS', -1)
    with pytest.raises(TokenError):
        decode_token(token)


def test_token_signed_with_other_secret_rejected(monkeypatch):
    token = generate_token('abc')
    monkeypatch.setattr(config, 'SECRET_KEY', 'another-secret')
    with pytest.raises(TokenError):
        decode_token(token)


def test_task_routes_require_token(client):
    assert client.get('/api/tasks').status_code == 401
    resp = client.get('/api/tasks', headers={'Authorization': 'Bearer not-a-token'})
    assert resp.status_code == 401
    assert resp.get_json()['message'] == 'Not authorized, token failed'
    resp = client.get('/api/tasks', headers={'Authorization': 'Basic abc'})
    assert resp.status_code == 401


def test_blank_email_never_stored(client):
    client.post('/api/auth/register', json={'email': '   ', 'password': 'pw'})
    assert utils.get_user_by_email('') is None


def test_login_blank_email_is_missing_field(client):
    resp = client.post('/api/auth/login', json={'email': '  ', 'password': 'pw'})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Please enter all fields'

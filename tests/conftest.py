import pytest

import config
import utils
from app import app as flask_app


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point the document store at a fresh directory for every test."""
    monkeypatch.setattr(config, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(config, 'SECRET_KEY', 'test-secret')
    return tmp_path


@pytest.fixture()
def client():
    flask_app.config['TESTING'] = True
    with flask_app.test_client() as client:
        yield client


@pytest.fixture()
def register(client):
    """Register a user over HTTP; returns ``(user_id, auth_headers)``."""
    def _register(email='alice@example.com', password='s3cret-pass'):
        resp = client.post('/api/auth/register', json={'email': email, 'password': password})
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        return body['user']['id'], {'Authorization': f'Bearer {body["token"]}'}
    return _register


@pytest.fixture()
def make_task():
    """Insert a task straight into the store."""
    def _make_task(user_id, name='task', due_date='2025-01-01', due_time='09:00', **extra):
        fields = {'name': name, 'due_date': due_date, 'due_time': due_time}
        fields.update(extra)
        return utils.add_task(user_id, fields)
    return _make_task

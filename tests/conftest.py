"""
Shared fixtures: an app on in-memory SQLite, its client and storage.
"""
import pytest

from app import create_app
from config import TestConfig
from models import db
from storage import DatabaseStorage


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    return DatabaseStorage(db)


@pytest.fixture
def admin_client(client, storage):
    """Test client logged in as an admin"""
    storage.create_user('admin', 'admin@mail.com', 'adminpass', role='admin')
    response = client.post('/api/auth/login', json={'username': 'admin', 'password': 'adminpass'})
    assert response.status_code == 200
    return client

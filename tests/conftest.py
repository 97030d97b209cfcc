# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from backend.core.config import Settings
from backend.main import create_app

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Sup3r-Secret-Pass"
TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class FakeClock:
    """Settable clock for lockout window tests."""

    def __init__(self, start=None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


def make_settings(tmp_path, **overrides):
    values = dict(
        environment="testing",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'securepent-test.db'}",
        secret_key=TEST_SECRET,
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        admin_email="admin@securepent.com",
        allowed_hosts="*",
        log_level="WARNING",
        smtp_host=None,
        smtp_username=None,
        sentry_dsn=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def clock(app):
    fake = FakeClock()
    app.state.auth_service.clock = fake
    return fake


@pytest.fixture
def login(client):
    def _login(username=ADMIN_USERNAME, password=ADMIN_PASSWORD):
        return client.post("/api/auth/login", json={"username": username, "password": password})

    return _login


@pytest.fixture
def admin_token(login):
    response = login()
    assert response.status_code == 200, response.text
    return response.json()["token"]


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}

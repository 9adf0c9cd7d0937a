import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from hearthboard import config, db
from hearthboard import models  # noqa: F401  registers tables on the metadata
from hearthboard.auth import LoginRateLimiter, hash_pin
from hearthboard.main import app, get_http_client
from hearthboard.weather import WeatherCache

TEST_PIN = "123456"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    with Session(test_engine) as session:
        yield session


def reset_database():
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)


db.engine = test_engine
app.dependency_overrides[db.get_session] = override_get_session
config.FAMILY_PIN_HASH = hash_pin(TEST_PIN)


class MockWeb:
    """Canned responses for outbound httpx calls, keyed by full URL."""

    def __init__(self):
        self.responses = {}
        self.requests = []

    def add(self, url, status_code=200, text=None, json=None):
        self.responses[url] = (status_code, text, json)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self.responses.get(str(request.url))
        if entry is None:
            return httpx.Response(404, text="not found")
        status_code, text, payload = entry
        if payload is not None:
            return httpx.Response(status_code, json=payload)
        return httpx.Response(status_code, text=text or "")


@pytest.fixture(autouse=True)
def setup_db():
    reset_database()
    app.state.login_limiter = LoginRateLimiter()
    app.state.weather_cache = WeatherCache()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def authed_client(client):
    resp = client.post("/api/auth/login", json={"pin": TEST_PIN})
    assert resp.status_code == 200
    return client


@pytest.fixture
def session():
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def mock_http():
    web = MockWeb()

    async def override_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(web.handler)) as client:
            yield client

    app.dependency_overrides[get_http_client] = override_http_client
    yield web
    app.dependency_overrides.pop(get_http_client, None)

import pytest
from fastapi.testclient import TestClient

from postproxy.cache import FeedCache
from postproxy.config import Settings
from postproxy.main import create_app

ENV_VARS = (
    "APP_ALLOWED_ORIGIN",
    "APP_CLIENT_KEY",
    "XAI_API_KEY",
    "GROK_MODEL",
    "X_BEARER_TOKEN",
    "X_ALLOWED_HANDLE",
    "USE_SECRET_MANAGER",
    "RATE_LIMIT__ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def make_client(make_settings):
    """Build a TestClient around a fresh app with the given settings."""

    def _make(feed_cache=None, rate_limiter=None, **overrides):
        app = create_app(make_settings(**overrides), feed_cache=feed_cache or FeedCache(), rate_limiter=rate_limiter)
        return TestClient(app)

    return _make

"""Test configuration and fixtures."""

import os

# Must be set before any farmlink import builds the cached AppConfig.
os.environ["LOG_FILE"] = ""
os.environ["DEVELOPMENT_MODE"] = "false"
os.environ["FIXTURE_DEMO_MODE"] = "false"

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import jwt
import pytest

from farmlink.auth import SessionStore, SessionTerminator, TokenStore
from farmlink.config import AppConfig
from farmlink.logger import StructuredLogger
from farmlink.services.api_client import ApiClient
from farmlink.services.auth_service import AuthService
from farmlink.services.fixture_responder import FixtureResponder, FixtureTransport
from farmlink.services.fixtures import FixtureCatalog
from farmlink.storage import MemoryStorage
from farmlink.ui.navigator import Navigator

TEST_SECRET = "farmlink-test-signing-key-0123456789abcdef"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def logger():
    """Console-only structured logger."""
    return StructuredLogger(name="farmlink.tests", log_file="")


@pytest.fixture
def config():
    """Configuration isolated from any local .env file."""
    return AppConfig(
        _env_file=None,
        API_BASE_URL="http://testserver/api",
        REQUEST_TIMEOUT_S=5.0,
        LOG_FILE="",
    )


@pytest.fixture
def make_token():
    """Factory for signed tokens expiring *expires_in* seconds from now."""
    def _make(expires_in: int = 3600, **claims: Any) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": "user-1",
            "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
            **claims,
        }
        return jwt.encode(payload, TEST_SECRET, algorithm="HS256")
    return _make


@pytest.fixture
def user_payload():
    """A backend user body holding two roles."""
    return {
        "id": "user-42",
        "full_name": "Ama Mensah",
        "email": "ama@example.com",
        "phone_number": "+233241112222",
        "roles": ["farmer", "buyer"],
        "profile_image_url": None,
        "farm_name": "Mensah Acres",
    }


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def token_store(storage, logger):
    return TokenStore(storage, logger)


@pytest.fixture
def session_store(storage, token_store, logger):
    return SessionStore(storage, token_store, logger)


@pytest.fixture
def navigator(logger):
    return Navigator(logger)


@pytest.fixture
def terminator(session_store, token_store, navigator, logger):
    return SessionTerminator(session_store, token_store, navigator, logger)


@pytest.fixture
def make_api(config, token_store, terminator, logger):
    """Build an ``ApiClient`` whose requests are answered by *handler*."""
    def _make(handler: Handler) -> ApiClient:
        return ApiClient(
            config=config,
            tokens=token_store,
            terminator=terminator,
            logger=logger,
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture
def make_auth(make_api, token_store, session_store, terminator, logger):
    """Build an ``AuthService`` on top of a mock-backed ``ApiClient``."""
    def _make(handler: Handler) -> AuthService:
        return AuthService(
            api=make_api(handler),
            tokens=token_store,
            session=session_store,
            terminator=terminator,
            logger=logger,
        )
    return _make


@pytest.fixture
def responder(logger):
    """Zero-latency fixture responder with the default miss policy."""
    return FixtureResponder(
        FixtureCatalog(),
        logger,
        latency_s=0,
        upload_latency_s=0,
        token_secret=TEST_SECRET,
    )


@pytest.fixture
def fixture_auth(config, responder, token_store, session_store, terminator, logger):
    """``AuthService`` wired to the fixture responder, as in development mode."""
    api = ApiClient(
        config=config,
        tokens=token_store,
        terminator=terminator,
        logger=logger,
        transport=FixtureTransport(responder),
    )
    return AuthService(
        api=api,
        tokens=token_store,
        session=session_store,
        terminator=terminator,
        logger=logger,
    )

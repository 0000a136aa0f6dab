"""
Session Services Package.

Contains the request dispatcher, the authentication gateway, the
observable session context and the development-mode fixture responder.

The ``create_services()`` factory wires the stores and services together,
returning a typed dict that the application layer (views / commands) can
consume without knowing the internal dependency graph.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, TypedDict

import httpx

from farmlink.auth import SessionStore, SessionTerminator, TokenStore
from farmlink.config import AppConfig
from farmlink.logger import StructuredLogger, get_logger
from farmlink.models.enums import FixtureMissPolicy
from farmlink.services.api_client import ApiClient
from farmlink.services.auth_service import AuthService
from farmlink.services.fixture_responder import FixtureResponder, FixtureTransport
from farmlink.services.fixtures import FixtureCatalog
from farmlink.services.session_context import SessionContext
from farmlink.storage import ClientStorage, SqliteStorage
from farmlink.storage_cipher import StorageCipher
from farmlink.ui.navigator import Navigator
from farmlink.ui.route_registry import RouteRegistry, build_default_registry


class ServiceContainer(TypedDict, total=False):
    """Typed container for all session services.

    ``fixture_responder`` is ``None`` unless development mode is on.
    """

    # --- Stores ---
    token_store: TokenStore
    session_store: SessionStore
    terminator: SessionTerminator

    # --- Network ---
    api_client: ApiClient
    fixture_responder: Optional[FixtureResponder]

    # --- Session ---
    auth_service: AuthService
    session_context: SessionContext
    route_registry: RouteRegistry


def create_storage(config: AppConfig, logger: Optional[StructuredLogger] = None) -> ClientStorage:
    """Open the durable client storage described by *config*.

    With ``STORAGE_ENCRYPTION`` on, values are encrypted with a key
    bound to this machine.  A salt file that cannot be created is fatal:
    the caller gets the ``OSError`` rather than unencrypted storage.
    """
    logger = logger or get_logger("storage")
    cipher: Optional[StorageCipher] = None
    if config.STORAGE_ENCRYPTION:
        cipher = StorageCipher(salt_path=config.salt_path, logger=logger)
    return SqliteStorage(path=Path(config.STORAGE_PATH), logger=logger, cipher=cipher)


def create_services(
    config: AppConfig,
    storage: ClientStorage,
    navigator: Navigator,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """
    Wire all stores and services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup and passes the
    returned dict to views / commands as needed.

    Args:
        config: Application configuration (injected into services that need it).
        storage: Durable client storage holding the session keys.
        navigator: Location owner; session teardown redirects through it.
        transport: Explicit ``httpx`` transport.  Overrides the fixture
            transport chosen in development mode.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("services")

    # ------------------------------------------------------------------
    # 1. Stores (durable session state)
    # ------------------------------------------------------------------
    token_store = TokenStore(storage=storage, logger=logger)
    session_store = SessionStore(storage=storage, tokens=token_store, logger=logger)
    terminator = SessionTerminator(
        session=session_store,
        tokens=token_store,
        navigator=navigator,
        logger=logger,
    )

    # ------------------------------------------------------------------
    # 2. Development mode: fixture responder replaces the backend
    # ------------------------------------------------------------------
    fixture_responder: Optional[FixtureResponder] = None
    if config.DEVELOPMENT_MODE:
        fixture_responder = FixtureResponder(
            catalog=FixtureCatalog(default_user=config.FIXTURE_DEFAULT_USER),
            logger=get_logger("fixtures"),
            latency_s=config.FIXTURE_LATENCY_S,
            upload_latency_s=config.FIXTURE_UPLOAD_LATENCY_S,
            miss_policy=(
                FixtureMissPolicy.FIRST_RECORD
                if config.FIXTURE_DEMO_MODE
                else FixtureMissPolicy.NOT_FOUND
            ),
            path_prefix=config.API_PATH_PREFIX,
            token_secret=config.FIXTURE_TOKEN_SECRET.get_secret_value(),
            token_ttl_s=config.FIXTURE_TOKEN_TTL_S,
        )
        # A session persisted by an earlier run is the fixture's identity too.
        fixture_responder.seed_identity(session_store.get_user())
        if transport is None:
            transport = FixtureTransport(fixture_responder)

    # ------------------------------------------------------------------
    # 3. Dispatcher and gateway
    # ------------------------------------------------------------------
    api_client = ApiClient(
        config=config,
        tokens=token_store,
        terminator=terminator,
        logger=get_logger("api"),
        transport=transport,
    )
    auth_service = AuthService(
        api=api_client,
        tokens=token_store,
        session=session_store,
        terminator=terminator,
        logger=get_logger("auth"),
    )

    # ------------------------------------------------------------------
    # 4. Session context and routes
    # ------------------------------------------------------------------
    session_context = SessionContext(
        auth=auth_service,
        navigator=navigator,
        logger=logger,
    )
    route_registry = build_default_registry(get_logger("routes"))

    return ServiceContainer(
        token_store=token_store,
        session_store=session_store,
        terminator=terminator,
        api_client=api_client,
        fixture_responder=fixture_responder,
        auth_service=auth_service,
        session_context=session_context,
        route_registry=route_registry,
    )

"""
Application Configuration.

Pydantic Settings model for the FarmLink client session core.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Backend API ---
    API_BASE_URL: str = "http://localhost:5000/api"
    API_PATH_PREFIX: str = "/api"
    REQUEST_TIMEOUT_S: float = 30.0

    # --- Development mode (fixture responder replaces the backend) ---
    DEVELOPMENT_MODE: bool = False
    FIXTURE_LATENCY_S: float = 0.3
    FIXTURE_UPLOAD_LATENCY_S: float = 0.5
    # Demo flows rely on unknown ids resolving to the first fixture record.
    FIXTURE_DEMO_MODE: bool = False
    FIXTURE_DEFAULT_USER: str = "multi_role"
    FIXTURE_TOKEN_TTL_S: int = 86_400
    FIXTURE_TOKEN_SECRET: SecretStr = SecretStr("farmlink-development-fixture-signing-key")

    # --- Durable client storage ---
    STORAGE_PATH: str = "farmlink_client.db"
    STORAGE_ENCRYPTION: bool = True
    STORAGE_SALT_PATH: str = ""  # empty -> ~/.farmlink_storage_salt

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "farmlink.log"  # empty disables the file handler
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning for configuration worth a second look.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        and development mode silently swaps the backend for fixtures.
        """
        _log = logging.getLogger("farmlink.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if self.DEVELOPMENT_MODE:
            _log.warning(
                "DEVELOPMENT_MODE is on; requests are answered by the "
                "fixture responder, not %s.",
                self.API_BASE_URL,
            )

        return self

    @property
    def salt_path(self) -> Path:
        """Location of the per-machine storage salt file."""
        if self.STORAGE_SALT_PATH:
            return Path(self.STORAGE_SALT_PATH)
        return Path.home() / ".farmlink_storage_salt"


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so first initialisation is safe from any thread.

    Prefer direct constructor injection of ``AppConfig`` in new code;
    this factory exists for modules such as the logger that need defaults
    before the dependency graph is wired.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance

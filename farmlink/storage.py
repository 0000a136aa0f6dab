"""
Durable Client Storage.

Key/value persistence for the three pieces of session state the client
keeps between runs: the bearer token, the user record (JSON) and the
active role.  The interface mirrors a browser's ``localStorage`` so the
token and session stores stay agnostic of where bytes end up.

Two backends are provided:

- **MemoryStorage**: a plain dict, used by tests and throw-away sessions.
- **SqliteStorage**: a single-table SQLite file.  When a
  ``StorageCipher`` is supplied every value is AES-256-GCM encrypted at
  rest, so a copied database file does not leak a live bearer token.

Usage (dependency injection at app startup)::

    from farmlink.storage import SqliteStorage
    from farmlink.logger import get_logger

    storage = SqliteStorage(
        path=Path("farmlink_client.db"),
        logger=get_logger("storage"),
    )
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from farmlink.logger import StructuredLogger
from farmlink.storage_cipher import StorageCipher, StorageCipherError

__all__ = ["ClientStorage", "MemoryStorage", "SqliteStorage", "CURRENT_SCHEMA_VERSION"]

# Bump when the table layout changes.
CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: list[str] = [
    # -- single-row version tracker -------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- key/value session state ----------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS client_storage (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        nonce BLOB,
        tag BLOB,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


@runtime_checkable
class ClientStorage(Protocol):
    """Contract for durable key/value client storage.

    Implementations must treat a missing key as ``None`` and make
    ``remove_item`` on a missing key a no-op.
    """

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...

    def close(self) -> None:
        """Release any underlying resources.  Safe to call repeatedly."""


class MemoryStorage(ClientStorage):
    """Process-local storage backed by a dict."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class SqliteStorage(ClientStorage):
    """SQLite-backed storage with optional encryption at rest.

    Parameters
    ----------
    path:
        Filesystem path for the SQLite database file.  Parent directories
        are created on demand.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    cipher:
        Optional ``StorageCipher``.  When given, values are stored as
        ciphertext plus nonce and tag; values that fail to decrypt (machine
        identity changed, corrupted row) read back as ``None``.
    """

    def __init__(
        self,
        path: Path,
        logger: StructuredLogger,
        cipher: Optional[StorageCipher] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._cipher: Optional[StorageCipher] = cipher
        self._conn: Optional[sqlite3.Connection] = self._connect(path)
        self._initialize_schema()

    # ------------------------------------------------------------------
    # ClientStorage API
    # ------------------------------------------------------------------

    def get_item(self, key: str) -> Optional[str]:
        row = self._db.execute(
            "SELECT value, nonce, tag FROM client_storage WHERE key = ?", (key,),
        ).fetchone()
        if row is None:
            return None

        if self._cipher is None:
            if row["nonce"] is not None:
                self._logger.warning(
                    "Stored value for '%s' is encrypted but no cipher is configured.",
                    key,
                )
                return None
            return bytes(row["value"]).decode("utf-8")

        if row["nonce"] is None:
            # Written before encryption was enabled; re-encrypted on next write.
            return bytes(row["value"]).decode("utf-8")

        try:
            return self._cipher.decrypt(
                bytes(row["value"]), bytes(row["nonce"]), bytes(row["tag"]),
            )
        except StorageCipherError as exc:
            self._logger.warning("Could not decrypt stored value for '%s': %s", key, exc)
            return None

    def set_item(self, key: str, value: str) -> None:
        nonce: Optional[bytes] = None
        tag: Optional[bytes] = None
        if self._cipher is not None:
            payload, nonce, tag = self._cipher.encrypt(value)
        else:
            payload = value.encode("utf-8")

        self._db.execute(
            """
            INSERT INTO client_storage (key, value, nonce, tag)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                nonce      = excluded.nonce,
                tag        = excluded.tag,
                updated_at = CURRENT_TIMESTAMP
            """,
            (key, payload, nonce, tag),
        )
        self._db.commit()

    def remove_item(self, key: str) -> None:
        self._db.execute("DELETE FROM client_storage WHERE key = ?", (key,))
        self._db.commit()

    def keys(self) -> list[str]:
        rows = self._db.execute("SELECT key FROM client_storage ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def close(self) -> None:
        """Close the SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._logger.info("Client storage closed.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @property
    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Client storage has been closed.")
        return self._conn

    def _connect(self, path: Path) -> sqlite3.Connection:
        """Open (or create) the storage database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("Client storage opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the client storage at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc

    def _initialize_schema(self) -> None:
        """Create tables idempotently and record the schema version."""
        with self._db:
            for ddl in _TABLE_DEFINITIONS:
                self._db.execute(ddl)
            row = self._db.execute(
                "SELECT version FROM schema_version WHERE id = 1",
            ).fetchone()
            if row is None:
                self._db.execute(
                    "INSERT INTO schema_version (id, version) VALUES (1, ?)",
                    (CURRENT_SCHEMA_VERSION,),
                )
                self._logger.info(
                    "Client storage schema created (version %d).", CURRENT_SCHEMA_VERSION,
                )
            elif row["version"] != CURRENT_SCHEMA_VERSION:
                self._logger.warning(
                    "Client storage schema version %d differs from expected %d.",
                    row["version"],
                    CURRENT_SCHEMA_VERSION,
                )

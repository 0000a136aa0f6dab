"""
Storage Encryption.

AES-256-GCM encryption for values written by ``SqliteStorage``.

Security model
--------------
- The key is derived once, at construction, from machine-specific
  characteristics (hostname + OS username) via PBKDF2-HMAC-SHA256 with a
  per-machine random salt.  The key is **never** persisted to disk.
- GCM provides both confidentiality and integrity; a tampered or
  foreign ciphertext fails verification instead of decrypting to junk.
- This protects a bearer token against casual disk access (a copied
  database file is useless on another machine).  It does not resist an
  attacker who already controls the OS account.
"""

from __future__ import annotations

import getpass
import os
import platform
import socket
import stat
from pathlib import Path

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2

from farmlink.logger import StructuredLogger


class StorageCipherError(Exception):
    """Raised when a stored value cannot be decrypted or verified."""


class StorageCipher:
    """Encrypts and decrypts storage values with a machine-bound key.

    Parameters
    ----------
    salt_path:
        Location of the per-machine 32-byte salt file, created on first
        use with owner-only permissions.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    iterations:
        PBKDF2 iteration count.

    Raises
    ------
    OSError
        If the salt file cannot be created or read.  Callers should refuse
        encrypted storage rather than fall back to a static salt.
    """

    _PBKDF2_ITERATIONS: int = 600_000
    _KEY_LENGTH: int = 32  # 256 bits
    _SALT_LENGTH: int = 32

    def __init__(
        self,
        salt_path: Path,
        logger: StructuredLogger,
        iterations: int = _PBKDF2_ITERATIONS,
    ) -> None:
        self._salt_path: Path = salt_path
        self._logger: StructuredLogger = logger
        self._iterations: int = iterations
        self._key: bytes = self._derive_key()

    def encrypt(self, plaintext: str) -> tuple[bytes, bytes, bytes]:
        """Return ``(ciphertext, nonce, tag)`` for *plaintext*."""
        cipher = AES.new(self._key, AES.MODE_GCM)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))
        return ciphertext, cipher.nonce, tag

    def decrypt(self, ciphertext: bytes, nonce: bytes, tag: bytes) -> str:
        """Decrypt and verify a value produced by :meth:`encrypt`.

        Raises
        ------
        StorageCipherError
            If verification fails (corrupted data or machine identity changed).
        """
        try:
            cipher = AES.new(self._key, AES.MODE_GCM, nonce=nonce)
            plaintext: bytes = cipher.decrypt_and_verify(ciphertext, tag)
            return plaintext.decode("utf-8")
        except (ValueError, KeyError, UnicodeDecodeError) as exc:
            raise StorageCipherError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _derive_key(self) -> bytes:
        """Derive a 256-bit AES key from machine identity and the salt."""
        password: str = f"{socket.gethostname()}:{getpass.getuser()}"
        salt: bytes = self._get_or_create_salt()
        return PBKDF2(
            password=password,
            salt=salt,
            dkLen=self._KEY_LENGTH,
            count=self._iterations,
            hmac_hash_module=SHA256,
        )

    def _get_or_create_salt(self) -> bytes:
        """Return the per-machine salt, creating it on first run."""
        if self._salt_path.exists():
            data: bytes = self._salt_path.read_bytes()
            if len(data) == self._SALT_LENGTH:
                return data
            self._logger.warning(
                "Salt file has unexpected length (%d); regenerating.", len(data),
            )
        salt: bytes = os.urandom(self._SALT_LENGTH)
        self._salt_path.parent.mkdir(parents=True, exist_ok=True)
        self._salt_path.write_bytes(salt)

        # Owner-only permissions; NTFS ACLs are left to the installer on Windows.
        if platform.system() != "Windows":
            self._salt_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600

        self._logger.info("Per-machine storage salt created at %s.", self._salt_path)
        return salt

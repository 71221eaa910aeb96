"""Fernet encryption for free-text wellness fields at rest.

Chat message content and stress-log triggers, symptoms and notes are
written encrypted. Structured fields (levels, cycle counts, statuses, ids)
stay in the clear so the unique and check constraints can see them.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Encrypts text and JSON values with one or more Fernet keys.

    ``key`` may hold several comma-separated keys. The first encrypts; all of
    them are tried for decryption, so an old key can be kept around while
    records are rotated onto a new one.

    Usage::

        encryptor = FieldEncryptor(key="new-key,old-key")
        token = encryptor.encrypt_text("felt tense after the meeting")
        encryptor.decrypt_text(token)
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If no key is given or any key is malformed.
        """
        keys = [k.strip() for k in (key or "").split(",") if k.strip()]
        if not keys:
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = MultiFernet([Fernet(k.encode()) for k in keys])
        except (ValueError, TypeError) as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc
        self._key_count = len(keys)

    @property
    def key_count(self) -> int:
        return self._key_count

    def encrypt_text(self, text: str | None) -> str | None:
        if text is None:
            return None
        return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")

    def decrypt_text(self, token: str | None) -> str | None:
        """
        Raises:
            EncryptionError: If the token was not produced by any configured key.
        """
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    def encrypt_json(self, data: Any) -> str | None:
        """Encrypt a JSON-serializable value (e.g. a list of trigger strings)."""
        if data is None:
            return None
        try:
            plaintext = json.dumps(data, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self.encrypt_text(plaintext)

    def decrypt_json(self, token: str | None) -> Any:
        plaintext = self.decrypt_text(token)
        if plaintext is None:
            return None
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise EncryptionError(f"Decrypted payload is not JSON: {exc}") from exc

    def rotate(self, token: str) -> str:
        """Re-encrypt ``token`` under the primary key."""
        try:
            return self._fernet.rotate(token.encode("ascii")).decode("ascii")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet key."""
        return Fernet.generate_key().decode("utf-8")

"""Symmetric encryption of stored OAuth token payloads (Fernet)."""

import json
import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class TokenCipher:
    """Encrypts and decrypts JSON token payloads with a single Fernet key."""

    def __init__(self, key: str | bytes | None):
        if not key:
            logger.warning(
                "CREDENTIAL_ENCRYPTION_KEY not set - using an ephemeral key, "
                "stored credentials will be unreadable after restart"
            )
            key = Fernet.generate_key()
        if isinstance(key, str):
            key = key.encode()
        self._fernet = Fernet(key)

    def encrypt(self, payload: dict) -> str:
        data = json.dumps(payload, separators=(",", ":")).encode()
        return self._fernet.encrypt(data).decode()

    def decrypt(self, token: str) -> dict:
        """Decrypt a payload written by ``encrypt``.

        Raises ValueError if the ciphertext was tampered with, was written
        under another key, or does not hold a JSON object.
        """
        try:
            data = self._fernet.decrypt(token.encode())
        except InvalidToken as e:
            raise ValueError("Invalid or foreign ciphertext") from e
        payload = json.loads(data)
        if not isinstance(payload, dict):
            raise ValueError("Decrypted payload is not an object")
        return payload

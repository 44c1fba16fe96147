from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from jobflow.config import Settings, get_settings
from jobflow.errors import InvalidStateError, VaultConfigurationError

logger = logging.getLogger(__name__)


def generate_key() -> str:
    return Fernet.generate_key().decode("ascii")


class CredentialVault:
    """Symmetric encryption for third-party platform credentials at rest.

    The key must be stable across restarts, so there is no generated fallback:
    a missing or malformed key is a configuration error.
    """

    def __init__(self, key: str):
        if not key:
            raise VaultConfigurationError("ENCRYPTION_KEY is not set; run `jobflow vault generate-key`")
        try:
            self._fernet = Fernet(key.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            raise VaultConfigurationError(
                "ENCRYPTION_KEY must be a url-safe base64-encoded 32-byte key"
            ) from exc

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CredentialVault:
        settings = settings or get_settings()
        return cls(settings.encryption_key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError) as exc:
            logger.warning("Credential decryption failed; key mismatch or corrupted ciphertext")
            raise InvalidStateError("stored credentials cannot be decrypted with the configured key") from exc

    def encrypt_json(self, payload: dict[str, Any]) -> str:
        return self.encrypt(json.dumps(payload, sort_keys=True))

    def decrypt_json(self, ciphertext: str) -> dict[str, Any]:
        return json.loads(self.decrypt(ciphertext))

"""Envelope encryption for Slack tokens at rest.

Each token is encrypted with its own freshly generated Fernet data key. The
data key is then encrypted ("wrapped") with the service key-encryption key,
a MultiFernet built from the configured keys. The first configured key wraps
new data keys; every configured key can unwrap, so keys rotate by prepending
a new one and calling :meth:`TokenCipher.rotate` on stored values.

Stored form::

    enc:v1:<wrapped data key>:<ciphertext>
"""

from collections.abc import Sequence

import structlog
from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from threadly.exceptions import ConfigValidationError, CredentialDecryptionError


logger = structlog.get_logger(__name__)

PREFIX = "enc:v1:"


class TokenCipher:
    """Encrypts and decrypts token strings with envelope encryption."""

    def __init__(self, keys: Sequence[str | bytes]) -> None:
        if not keys:
            raise ConfigValidationError("At least one token encryption key is required")
        try:
            self._kek = MultiFernet([Fernet(key) for key in keys])
        except (ValueError, TypeError) as e:
            raise ConfigValidationError(
                "Invalid token encryption key; expected url-safe base64 Fernet keys"
            ) from e

    @staticmethod
    def generate_key() -> str:
        """Return a new key suitable for THREADLY_TOKEN_ENCRYPTION_KEYS."""
        return Fernet.generate_key().decode()

    @staticmethod
    def is_encrypted(value: str) -> bool:
        return value.startswith(PREFIX)

    def encrypt(self, plaintext: str) -> str:
        data_key = Fernet.generate_key()
        ciphertext = Fernet(data_key).encrypt(plaintext.encode())
        wrapped = self._kek.encrypt(data_key)
        return f"{PREFIX}{wrapped.decode()}:{ciphertext.decode()}"

    def decrypt(self, stored: str) -> str:
        """Decrypt a stored value.

        Raises:
            CredentialDecryptionError: If the value is malformed or no
                configured key can unwrap it
        """
        if not self.is_encrypted(stored):
            raise CredentialDecryptionError("Stored token is not in encrypted form")

        wrapped, sep, ciphertext = stored[len(PREFIX) :].partition(":")
        if not sep or not wrapped or not ciphertext:
            raise CredentialDecryptionError("Stored token is malformed")

        try:
            data_key = self._kek.decrypt(wrapped.encode())
            return Fernet(data_key).decrypt(ciphertext.encode()).decode()
        except (InvalidToken, ValueError) as e:
            raise CredentialDecryptionError(
                "Stored token could not be decrypted with the configured keys"
            ) from e

    def rotate(self, stored: str) -> str:
        """Re-wrap the data key of a stored value under the primary key."""
        if not self.is_encrypted(stored):
            raise CredentialDecryptionError("Stored token is not in encrypted form")
        wrapped, _, ciphertext = stored[len(PREFIX) :].partition(":")
        try:
            rewrapped = self._kek.rotate(wrapped.encode())
        except InvalidToken as e:
            raise CredentialDecryptionError(
                "Stored token could not be decrypted with the configured keys"
            ) from e
        return f"{PREFIX}{rewrapped.decode()}:{ciphertext}"

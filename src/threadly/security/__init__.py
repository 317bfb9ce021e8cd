"""Security primitives: token encryption and API access control."""

from threadly.security.token_cipher import TokenCipher


__all__ = ["TokenCipher"]

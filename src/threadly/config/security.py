"""Security configuration settings."""

from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from threadly.core.validators import parse_comma_separated
from threadly.security.token_cipher import TokenCipher


class SecuritySettings(BaseSettings):
    """Security-specific configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="THREADLY_",
        case_sensitive=False,
        extra="ignore",
    )

    auth_token: str | None = Field(
        default=None,
        description="Bearer token required on /api routes (optional)",
    )

    token_encryption_keys: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description=(
            "Fernet keys wrapping the per-token data keys. The first key "
            "encrypts, all keys decrypt."
        ),
    )

    token_encryption_key_generated: bool = Field(
        default=False,
        description="Whether the encryption key was auto-generated",
    )

    @field_validator("token_encryption_keys", mode="before")
    @classmethod
    def validate_keys(cls, v: str | list[str]) -> list[str]:
        """Accept a comma-separated key list."""
        return parse_comma_separated(v)

    @model_validator(mode="after")
    def ensure_token_encryption_key(self) -> "SecuritySettings":
        """Generate an ephemeral key when none is configured."""
        if not self.token_encryption_keys:
            self.token_encryption_keys = [TokenCipher.generate_key()]
            self.token_encryption_key_generated = True
        return self

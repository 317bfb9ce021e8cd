"""Slack application settings."""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from threadly.core.validators import parse_comma_separated


DEFAULT_BOT_SCOPES = [
    "channels:read",
    "channels:history",
    "channels:join",
    "groups:read",
    "groups:history",
    "chat:write",
    "reactions:read",
    "mpim:history",
    "im:history",
    "users:read",
]
DEFAULT_USER_SCOPES = ["users:read", "users:read.email"]


class SlackSettings(BaseSettings):
    """Slack app credentials and Web API options.

    Read from SLACK_* environment variables, e.g. SLACK_CLIENT_ID.
    """

    model_config = SettingsConfigDict(
        env_prefix="SLACK_",
        case_sensitive=False,
        extra="ignore",
    )

    client_id: str = Field(default="", description="Slack app client id")
    client_secret: str = Field(default="", description="Slack app client secret")
    redirect_uri: str = Field(
        default="https://localhost:3443/oauth/callback",
        description="OAuth redirect URI; must match the authorize request exactly",
    )
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Dashboard URL the OAuth callback redirects to",
    )
    api_base_url: str = Field(
        default="https://slack.com/api",
        description="Slack Web API base URL",
    )
    authorize_url: str = Field(
        default="https://slack.com/oauth/v2/authorize",
        description="Slack OAuth authorize endpoint",
    )
    bot_scopes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: DEFAULT_BOT_SCOPES.copy()
    )
    user_scopes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: DEFAULT_USER_SCOPES.copy()
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout in seconds for every Slack API call",
    )
    legacy_token_ttl_seconds: int = Field(
        default=86400,
        ge=60,
        description="Expiry assumed for grants that report no expires_in",
    )

    @field_validator("bot_scopes", "user_scopes", mode="before")
    @classmethod
    def validate_scopes(cls, v: str | list[str]) -> list[str]:
        """Accept comma-separated scope strings."""
        return parse_comma_separated(v)

    @property
    def is_configured(self) -> bool:
        """Whether client credentials are present."""
        return bool(self.client_id and self.client_secret)

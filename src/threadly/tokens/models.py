"""Credential and lifecycle result types."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Credential:
    """A user's decrypted Slack credential.

    ``refresh_token`` is None for legacy non-rotating grants.
    """

    user_id: str
    access_token: str
    expires_at: datetime
    refresh_token: str | None = None
    workspace_id: str | None = None
    workspace_name: str | None = None
    scope: str | None = None
    bot_user_id: str | None = None
    authed_user_id: str | None = None
    created_at: datetime | None = None
    last_refreshed: datetime | None = None
    last_used: datetime | None = None

    @property
    def is_rotating(self) -> bool:
        return bool(self.refresh_token)

    def expires_within(self, window: timedelta, now: datetime | None = None) -> bool:
        """Whether the access token expires inside ``window`` from ``now``."""
        now = now or datetime.now(UTC)
        return self.expires_at <= now + window

    def with_tokens(
        self,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime,
        last_refreshed: datetime,
    ) -> "Credential":
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            expires_at=expires_at,
            last_refreshed=last_refreshed,
        )


@dataclass
class SweepResult:
    """Counts from one proactive sweep."""

    checked: int = 0
    migrated: int = 0
    refreshed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: dict[str, str] = field(default_factory=dict)


class MigrationResult(BaseModel):
    """Outcome of forcing legacy credentials onto rotating tokens."""

    model_config = ConfigDict(populate_by_name=True)

    migrated_count: int = Field(default=0, alias="migratedCount")
    error_count: int = Field(default=0, alias="errorCount")


class RekeyResult(BaseModel):
    """Outcome of re-wrapping stored tokens under the primary key."""

    model_config = ConfigDict(populate_by_name=True)

    rekeyed_count: int = Field(default=0, alias="rekeyedCount")
    error_count: int = Field(default=0, alias="errorCount")


class TokenStatus(BaseModel):
    """Per-user token state for the status dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    workspace: str | None = None
    token_prefix: str = Field(alias="tokenPrefix")
    has_refresh_token: bool = Field(alias="hasRefreshToken")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")
    time_remaining: str = Field(alias="timeRemaining")
    is_expired: bool = Field(alias="isExpired")
    last_refreshed: str = Field(alias="lastRefreshed")

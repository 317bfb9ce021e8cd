"""Scheduler configuration settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    """
    Configuration for the background delivery tick and token sweep.

    Settings can be configured via environment variables with SCHEDULER__ prefix.
    """

    enabled: bool = Field(
        default=True,
        description="Whether the background jobs run in this process",
    )

    delivery_interval_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Seconds between due-message checks",
    )

    token_sweep_interval_hours: float = Field(
        default=2,
        gt=0,
        le=24,
        description="Hours between proactive token sweeps",
    )

    access_token_safety_window_seconds: int = Field(
        default=300,
        ge=0,
        description="Refresh on use when the token expires within this window",
    )

    proactive_refresh_window_hours: float = Field(
        default=4,
        ge=0,
        description="The sweep refreshes tokens expiring within this window",
    )

    refresh_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per refresh when Slack is unreachable",
    )

    record_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts to record a delivery outcome when the Datastore fails",
    )

    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Messages dispatched in parallel within one tick",
    )

    graceful_shutdown_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout in seconds for running jobs to finish on shutdown",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER__",
        case_sensitive=False,
    )

"""Settings configuration for the Threadly server."""

import os
import tomllib
from pathlib import Path
from typing import Any

import orjson
import structlog
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from threadly.config.discovery import find_toml_config_file
from threadly.core.validators import parse_comma_separated
from threadly.exceptions import ConfigValidationError

from .cors import CORSSettings
from .database import DatabaseSettings
from .scheduler import SchedulerSettings
from .security import SecuritySettings
from .server import ServerSettings
from .slack import SlackSettings


__all__ = [
    "CONFIG_OVERRIDES_ENV",
    "Settings",
    "cli_overrides_from_args",
    "get_settings",
]

CONFIG_OVERRIDES_ENV = "THREADLY_CONFIG_OVERRIDES"

logger = structlog.get_logger(__name__)

class Settings(BaseSettings):
    """
    Configuration settings for the Threadly server.

    Settings are loaded from environment variables, .env files, and TOML configuration files.
    Environment variables take precedence over .env file values.
    TOML configuration files are loaded in the following order:
    1. .threadly.toml in current directory
    2. threadly.toml in git repository root
    3. config.toml in user config directory/threadly/ (platform-specific)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    security: SecuritySettings = Field(
        default_factory=SecuritySettings,
        description="Security configuration settings",
    )

    cors: CORSSettings = Field(
        default_factory=CORSSettings,
        description="CORS configuration settings",
    )

    slack: SlackSettings = Field(
        default_factory=SlackSettings,
        description="Slack app configuration",
    )

    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings,
        description="Datastore configuration",
    )

    scheduler: SchedulerSettings = Field(
        default_factory=SchedulerSettings,
        description="Background job configuration",
    )

    @field_validator(
        "server", "security", "cors", "slack", "database", "scheduler", mode="before"
    )
    @classmethod
    def coerce_section(cls, v: Any, info: ValidationInfo) -> Any:
        """Accept None or a foreign model for a nested section."""
        section_class = cls.model_fields[info.field_name].annotation
        if v is None:
            return section_class()
        if isinstance(v, section_class):
            return v
        if isinstance(v, BaseModel):
            return section_class(**v.model_dump())
        return v

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    def model_dump_safe(self) -> dict[str, Any]:
        """Dump settings with secrets masked."""
        data = self.model_dump()
        if data["slack"].get("client_secret"):
            data["slack"]["client_secret"] = "***"
        if data["security"].get("auth_token"):
            data["security"]["auth_token"] = "***"
        data["security"]["token_encryption_keys"] = [
            "***" for _ in data["security"]["token_encryption_keys"]
        ]
        return data

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Raises:
            ValueError: If the TOML file is invalid or cannot be read
        """
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ValueError(f"Cannot read TOML config file {toml_path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings instance from configuration file.

        Args:
            config_path: Path to configuration file. Can be:
                - None: Auto-discover config file or use CONFIG_FILE env var
                - Path or str: Use this specific config file
            **kwargs: Additional keyword arguments to override config values

        Returns:
            Settings: Configured Settings instance
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            if config_path.suffix.lower() != ".toml":
                raise ValueError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)

        merged_config = {**config_data, **kwargs}
        return cls(**merged_config)


def cli_overrides_from_args(**cli_args: Any) -> dict[str, Any]:
    """Turn non-None ``serve`` options into nested settings overrides."""
    overrides: dict[str, Any] = {}

    server = {
        key: cli_args[key]
        for key in ("host", "port", "reload", "log_level", "log_file", "json_logs")
        if cli_args.get(key) is not None
    }
    if server:
        overrides["server"] = server

    if cli_args.get("auth_token") is not None:
        overrides["security"] = {"auth_token": cli_args["auth_token"]}

    if cli_args.get("database_path") is not None:
        overrides["database"] = {"path": cli_args["database_path"]}

    if cli_args.get("no_scheduler"):
        overrides["scheduler"] = {"enabled": False}

    if cli_args.get("cors_origins"):
        overrides["cors"] = {"origins": parse_comma_separated(cli_args["cors_origins"])}

    return overrides


def get_settings(config_path: Path | str | None = None) -> Settings:
    """Build settings from the environment, config file and CLI overrides.

    ``threadly serve`` hands its options to uvicorn workers as JSON in the
    THREADLY_CONFIG_OVERRIDES environment variable.
    """
    cli_overrides: dict[str, Any] = {}
    raw_overrides = os.environ.get(CONFIG_OVERRIDES_ENV)
    if raw_overrides:
        try:
            cli_overrides = orjson.loads(raw_overrides)
        except orjson.JSONDecodeError:
            logger.warning("config_overrides_ignored", env=CONFIG_OVERRIDES_ENV)

    try:
        return Settings.from_config(config_path=config_path, **cli_overrides)
    except (OSError, ValueError) as e:
        raise ConfigValidationError(f"Configuration error: {e}") from e

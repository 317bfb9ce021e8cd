"""Configuration module for the Threadly server."""

from threadly.exceptions import ConfigValidationError

from .scheduler import SchedulerSettings
from .security import SecuritySettings
from .settings import Settings, cli_overrides_from_args, get_settings
from .slack import SlackSettings


__all__ = [
    "Settings",
    "get_settings",
    "cli_overrides_from_args",
    "ConfigValidationError",
    "SchedulerSettings",
    "SecuritySettings",
    "SlackSettings",
]

"""Datastore configuration settings."""

from pathlib import Path

from pydantic import BaseModel, Field

from threadly.config.discovery import get_threadly_data_dir


class DatabaseSettings(BaseModel):
    """Location of the SQL Datastore."""

    path: Path = Field(
        default_factory=lambda: get_threadly_data_dir() / "threadly.db",
        description="SQLite database file",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")

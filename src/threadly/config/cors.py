"""CORS configuration settings."""

from pydantic import BaseModel, Field, field_validator, model_validator

from threadly.core.validators import parse_comma_separated


class CORSSettings(BaseModel):
    """CORS settings for the dashboard frontend.

    When origins contains "*", credentials are disabled.
    """

    origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API",
    )

    credentials: bool = Field(
        default=True,
        description="Allow credentials (forced off for wildcard origins)",
    )

    methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
        description="Allowed methods",
    )

    headers: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed headers",
    )

    expose_headers: list[str] = Field(
        default_factory=lambda: ["X-Request-ID"],
        description="Headers exposed to the browser",
    )

    max_age: int = Field(default=600, ge=0, description="Preflight max age")

    @field_validator("origins", "headers", "expose_headers", mode="before")
    @classmethod
    def validate_lists(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated values."""
        return parse_comma_separated(v)

    @field_validator("methods", mode="before")
    @classmethod
    def validate_methods(cls, v: str | list[str]) -> list[str]:
        """Parse and upper-case methods."""
        return [method.upper() for method in parse_comma_separated(v)]

    @model_validator(mode="after")
    def validate_wildcard_credentials(self) -> "CORSSettings":
        """Disable credentials when origins contain a wildcard."""
        if "*" in self.origins and self.credentials:
            object.__setattr__(self, "credentials", False)
        return self

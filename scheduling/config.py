"""
Configuration for the scheduling engine.

Uses Pydantic Settings so every option can be supplied through environment
variables prefixed with SCHEDULING_ or a .env file in the working directory.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scheduling.timeutil import validate_timezone


class EngineSettings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Example:
        SCHEDULING_DEFAULT_TIMEZONE=America/New_York
        SCHEDULING_RECURRENCE_HORIZON_YEARS=2
    """

    default_timezone: str = Field(
        default="UTC",
        description="IANA zone used for calendars created without one",
    )
    recurrence_horizon_years: int = Field(
        default=5,
        ge=1,
        description="Safety bound on recurrence expansion, in years from the series start",
    )
    default_auto_decline: bool = Field(
        default=True,
        description="Reject conflicting creations when the caller does not say otherwise",
    )
    csv_include_calendar_columns: bool = Field(
        default=True,
        description="Append Calendar and Timezone columns to CSV exports",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_timezone")
    @classmethod
    def check_default_timezone(cls, value: str) -> str:
        """Reject zone identifiers zoneinfo does not know."""
        return validate_timezone(value)


@lru_cache()
def get_settings() -> EngineSettings:
    """
    Get the cached settings instance.

    Returns:
        EngineSettings loaded from the environment
    """
    return EngineSettings()

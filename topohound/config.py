"""TopoHound centralized configuration management.

Uses pydantic-settings to load configuration from environment variables
and .env files with validation.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_MAX_RESOURCES, OUTPUT_FORMATS, ROOT_MODULE


class Settings(BaseSettings):
    """TopoHound conversion settings.

    All settings can be overridden via environment variables
    prefixed with TOPOHOUND_.

    Example:
        TOPOHOUND_STRICT=false
        TOPOHOUND_OUTPUT_FORMAT=cytoscape
    """

    model_config = SettingsConfigDict(
        env_prefix="TOPOHOUND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Conversion
    strict: bool = Field(default=True, description="Abort the run on the first configuration error")
    max_resources: int = Field(
        default=DEFAULT_MAX_RESOURCES,
        ge=1,
        description="Maximum number of declared resources per conversion",
    )
    root_module: str = Field(default=ROOT_MODULE, description="Name of the root module path element")

    # Output
    output_format: str = Field(default="records", description="Output record layout")
    output_indent: Optional[int] = Field(default=None, ge=0, description="JSON indent for the bundle")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        v = v.lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError(f"output_format must be one of {', '.join(OUTPUT_FORMATS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()

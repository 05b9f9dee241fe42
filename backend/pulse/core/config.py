"""Collector configuration"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
PULSE_DIR = Path(__file__).parent.parent
BACKEND_DIR = PULSE_DIR.parent
COGS_PACKAGE = "pulse.cogs"

BOT_NAME = "Pulse Analytics"
BOT_VERSION = "1.0.0"


class PulseSettings(BaseSettings):
    """Collector settings"""

    model_config = SettingsConfigDict(
        env_file=BACKEND_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord
    discord_token: str = Field(..., description="Discord bot token")

    # Fact sink binding
    sink: Literal["http", "database"] = Field(
        default="http", description="Where facts are delivered: 'http' or 'database'"
    )

    # HTTP ingestion
    ingest_url: str = Field(default="", description="Ingestion endpoint base URL")
    ingest_secret: str = Field(default="", description="Shared secret for payload signatures")
    http_timeout: float = Field(default=10.0, description="Ingestion request timeout in seconds")

    # Database
    database_url: str = Field(default="", description="PostgreSQL database URL")
    run_migrations: bool = Field(default=True, description="Apply pending migrations on startup")

    # Health server
    health_enabled: bool = Field(default=True, description="Start the HTTP health server")
    health_port: int = Field(default=8080, description="Health server port")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("ingest_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @model_validator(mode="after")
    def validate_sink_options(self) -> "PulseSettings":
        """Require the options of the selected sink binding"""
        if self.sink == "http":
            missing = [
                name.upper()
                for name in ("ingest_url", "ingest_secret")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"SINK=http requires {', '.join(missing)} to be set"
                )
        else:
            if not self.database_url:
                raise ValueError("SINK=database requires DATABASE_URL to be set")
            if not self.database_url.startswith(("postgresql://", "postgres://")):
                raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return self


@lru_cache
def get_settings() -> PulseSettings:
    """Get cached settings instance"""
    return PulseSettings()  # type: ignore[call-arg]


def validate_env_vars() -> PulseSettings:
    """Load settings, turning validation failures into a readable ValueError."""
    try:
        settings = get_settings()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValueError(f"Invalid configuration: {problems}") from e

    logger.info("All required environment variables validated successfully")
    return settings

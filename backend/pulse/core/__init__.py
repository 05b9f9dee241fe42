"""Core modules for the Pulse collector."""

from .config import (
    BACKEND_DIR,
    BOT_NAME,
    BOT_VERSION,
    COGS_PACKAGE,
    PULSE_DIR,
    PulseSettings,
    get_settings,
    validate_env_vars,
)
from .health_server import HealthCheckServer
from .logging import setup_logging

__all__ = [
    # Settings
    "PulseSettings",
    "get_settings",
    "validate_env_vars",
    "BOT_NAME",
    "BOT_VERSION",
    # Paths
    "PULSE_DIR",
    "BACKEND_DIR",
    "COGS_PACKAGE",
    # Services
    "HealthCheckServer",
    # Logging
    "setup_logging",
]

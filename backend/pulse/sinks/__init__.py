"""Fact delivery bindings."""

from typing import TYPE_CHECKING

from shared.database import DatabaseManager

from .base import FactSink, encode_payload, fact_to_payload
from .database import DatabaseSink
from .http import HttpIngestSink, sign_payload, verify_signature

if TYPE_CHECKING:
    from pulse.core.config import PulseSettings

__all__ = [
    "FactSink",
    "fact_to_payload",
    "encode_payload",
    "HttpIngestSink",
    "DatabaseSink",
    "sign_payload",
    "verify_signature",
    "create_sink",
]


def create_sink(settings: "PulseSettings") -> FactSink:
    """Build the sink selected by ``settings.sink``."""
    if settings.sink == "database":
        return DatabaseSink(
            DatabaseManager(settings.database_url), run_migrations=settings.run_migrations
        )
    return HttpIngestSink(
        settings.ingest_url, settings.ingest_secret, timeout=settings.http_timeout
    )

"""Shared repository layer for the Pulse collector."""

from .analytics import AnalyticsRepository

__all__ = [
    "AnalyticsRepository",
]

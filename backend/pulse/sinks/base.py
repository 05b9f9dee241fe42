"""Fact sink interface and wire serialization."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from typing import Any

from shared.models import Fact


def _primitive(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


def fact_to_payload(fact: Fact) -> dict[str, Any]:
    """Serialize a fact to the ingestion wire shape.

    ``{"type": ..., "server_id": ..., "timestamp": ..., "data": {...}}``
    """
    data = {
        name: _primitive(value)
        for name, value in asdict(fact).items()
        if name not in ("server_id", "timestamp")
    }
    return {
        "type": fact.type,
        "server_id": fact.server_id,
        "timestamp": fact.timestamp,
        "data": data,
    }


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Canonical JSON bytes: compact, sorted keys, UTF-8."""
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode(
        "utf-8"
    )


class FactSink(ABC):
    """Best-effort delivery of a single fact.

    ``deliver`` returns True on success and False on failure; transport and
    storage errors are logged by the sink, never raised.
    """

    name: str = "sink"

    async def start(self) -> None:
        """Acquire resources (connections, pools)."""

    async def close(self) -> None:
        """Release resources."""

    async def check_health(self) -> bool:
        """Whether the sink can currently accept facts."""
        return True

    @abstractmethod
    async def deliver(self, fact: Fact) -> bool: ...

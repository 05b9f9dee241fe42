"""Signed HTTP delivery to the ingestion endpoint."""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

import httpx

from shared.models import Fact

from .base import FactSink, encode_payload, fact_to_payload

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Pulse-Signature"
TIMESTAMP_HEADER = "X-Pulse-Timestamp"
EVENTS_PATH = "/events"


def sign_payload(secret: str, body: bytes) -> str:
    """HMAC-SHA256 of the exact request body, formatted as ``sha256=<hex>``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Receiver-side check of a ``sign_payload`` header value."""
    return hmac.compare_digest(sign_payload(secret, body), signature)


class HttpIngestSink(FactSink):
    """POST each fact as JSON to ``{base_url}/events``."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        secret: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = f"{base_url.rstrip('/')}{EVENTS_PATH}"
        self._secret = secret
        # Shared HTTP client, reuses TCP connections across deliveries
        self._http = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()

    def build_request_parts(self, fact: Fact) -> tuple[bytes, dict[str, str]]:
        """Return the signed body and headers for a fact."""
        body = encode_payload(fact_to_payload(fact))
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_payload(self._secret, body),
            TIMESTAMP_HEADER: str(int(time.time())),
        }
        return body, headers

    async def deliver(self, fact: Fact) -> bool:
        body, headers = self.build_request_parts(fact)
        try:
            response = await self._http.post(self.endpoint, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to deliver {fact.type} for server {fact.server_id}: {e!r}")
            return False

        if not response.is_success:
            logger.error(
                f"Ingestion rejected {fact.type} for server {fact.server_id}: "
                f"{response.status_code} - {response.text[:200]}"
            )
            return False

        logger.debug(f"Delivered {fact.type} for server {fact.server_id}")
        return True

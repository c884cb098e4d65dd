"""
Transport — a single timeout-bounded POST.

No retries, no status interpretation: the caller decides what a non-200
means. Anything that stops the exchange from happening at all (refused
connection, DNS failure, timeout) comes back as NetworkError.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from askgpt.adapter import encode_body
from askgpt.errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


@dataclass
class TransportResponse:
    """Raw outcome of the exchange."""
    status_code: int
    text: str = ""
    latency_ms: float = 0.0


class HttpTransport:
    """Blocking HTTP transport for OpenAI-style endpoints."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    @staticmethod
    def _headers(api_key: str) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def post(self, url: str, body: dict[str, Any], api_key: str) -> TransportResponse:
        """POST the encoded body. Raises NetworkError if no response arrives."""
        payload = encode_body(body)
        t0 = time.monotonic()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(
                    url,
                    content=payload.encode("utf-8"),
                    headers=self._headers(api_key),
                )
        except httpx.TimeoutException as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Request to %s timed out after %.0fms", url, latency)
            raise NetworkError(
                f"Timeout after {self.timeout}s",
                {"reason": "timeout", "timeout_s": self.timeout, "error": str(e)},
            ) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise NetworkError(
                f"Network error: {e}",
                {"reason": type(e).__name__, "error": str(e)},
            ) from e

        latency = (time.monotonic() - t0) * 1000
        logger.debug("POST %s -> %d in %.0fms", url, resp.status_code, latency)
        return TransportResponse(status_code=resp.status_code, text=resp.text, latency_ms=latency)

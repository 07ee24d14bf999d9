"""Shared HTTP transport for the generation service clients.

Failures are classified the way they are reported to the user:

- an HTTP error status becomes a :class:`ServiceError` whose message is the
  service's JSON ``error`` field, or ``HTTP <status>: <reason>`` followed by
  the start of the response body;
- a timeout becomes a :class:`TransportError` of kind ``"timeout"``;
- a connection failure becomes a :class:`TransportError` of kind
  ``"network"``;
- any other transport failure becomes a :class:`TransportError` of kind
  ``"generic"``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from nodebanana.engine.errors import ServiceError, TransportError

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timed out. Try reducing image sizes or using a simpler prompt."
NETWORK_MESSAGE = "Network error. Check your connection and try again."

# Number of response body characters quoted in an HTTP error message.
_BODY_EXCERPT = 200


def http_error_message(response: httpx.Response) -> str:
    """Build the user-facing message for a non-2xx response."""
    message = f"HTTP {response.status_code}: {response.reason_phrase}"
    body = response.text
    try:
        payload = json.loads(body)
    except ValueError:
        if body:
            message += f" - {body[:_BODY_EXCERPT]}"
        return message
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return message


class JsonServiceClient:
    """Base class for clients that POST JSON to one endpoint.

    Args:
        url: Endpoint URL.
        timeout: Request timeout in seconds.
        client: Optional pre-built ``httpx.AsyncClient`` (tests pass one
            with a mock transport).  When omitted, a client is created per
            request.
    """

    def __init__(
        self, url: str, timeout: float = 300.0, client: httpx.AsyncClient | None = None
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    async def post_json(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON body.

        Raises:
            ServiceError: On an HTTP error status or a non-JSON body.
            TransportError: When no response was received.
        """
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
        except httpx.TimeoutException as exc:
            logger.error("Request to %s timed out after %ss.", self.url, self.timeout)
            raise TransportError(TIMEOUT_MESSAGE, kind="timeout") from exc
        except httpx.NetworkError as exc:
            logger.error("Network error calling %s: %s", self.url, exc)
            raise TransportError(NETWORK_MESSAGE, kind="network") from exc
        except httpx.HTTPError as exc:
            logger.error("Request to %s failed: %s", self.url, exc)
            raise TransportError(f"Network error: {exc}", kind="generic") from exc

        if response.is_error:
            message = http_error_message(response)
            logger.error("Service %s returned HTTP %d: %s", self.url, response.status_code, message)
            raise ServiceError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise ServiceError(f"Invalid response from {self.url}") from exc
        if not isinstance(body, dict):
            raise ServiceError(f"Invalid response from {self.url}")
        return body

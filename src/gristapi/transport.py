"""Transport layer for Grist REST calls.

Defines the Transport protocol and implementations:
- HttpxTransport: Production transport talking HTTP via httpx
- MockGristDoc (in gristapi.mock): In-memory document for tests
"""

from __future__ import annotations

import logging
import ssl
from abc import ABC, abstractmethod
from typing import Any

import certifi
import httpx

from gristapi.exceptions import (
    AuthenticationError,
    NotFoundError,
    RemoteError,
    TransportError,
)

logger = logging.getLogger("gristapi.requests")

DEFAULT_TIMEOUT = 60

# Multipart file spec as accepted by httpx: (filename, content, content_type)
FileSpec = tuple[str, Any, str]


class Transport(ABC):
    """Abstract HTTP capability used by GristDocAPI.

    Implementations send one request and return the decoded JSON body, or
    raise a TransportError (RemoteError for non-success responses).
    """

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        files: list[tuple[str, FileSpec]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send a request.

        Args:
            method: HTTP method, e.g. "GET" or "PATCH"
            url: Full URL including any query string
            json: Body to send as JSON
            files: Multipart form fields, used instead of json for uploads
            headers: Extra headers, e.g. Authorization

        Returns:
            Decoded JSON response, or None for an empty body
        """
        ...

    async def close(self) -> None:
        """Close any open connections."""
        pass


class HttpxTransport(Transport):
    """Production transport using an httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds
            client: Pre-built client to use instead of creating one
        """
        if client is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            client = httpx.AsyncClient(
                timeout=timeout,
                verify=ssl_context,
                headers={"Accept": "application/json"},
            )
        self._client = client

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        files: list[tuple[str, FileSpec]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        logger.debug(
            "Request %s %s json=%r files=%r",
            method,
            url,
            json,
            [name for _, (name, _, _) in files] if files else None,
        )
        try:
            if files is not None:
                response = await self._client.request(method, url, files=files, headers=headers)
            else:
                response = await self._client.request(method, url, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _remote_error(method, url, e.response) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

        if not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def _remote_error(method: str, url: str, response: httpx.Response) -> RemoteError:
    """Build the error for a failed response, including the server's message."""
    status = response.status_code
    message = f"{method} {url} failed with status code {status}"

    # If the body is a string or {"error": ...}, use that for the message.
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text or None
    if isinstance(body, str):
        message += " / " + body
    elif isinstance(body, dict) and body.get("error"):
        message += " / Grist: " + str(body["error"])

    if status in (401, 403):
        return AuthenticationError(message, status, body)
    if status == 404:
        return NotFoundError(message, status, body)
    return RemoteError(message, status, body)

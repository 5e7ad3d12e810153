"""
Authenticated HTTP transport shared by both API surfaces.

The transport turns a ``RequestDescriptor`` into exactly one HTTP exchange
against one API surface. It attaches the bearer key and JSON content
negotiation headers, serializes typed bodies, and converts network failures
into ``TransportError``. It never retries and never caches.

The transport must be used as an async context manager (or closed with
``aclose``) so the underlying connection pool is released:

    async with Transport(config, Surface.CLIENT) as transport:
        response = await transport.execute(RequestDescriptor("GET", ""))
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from pterodactyl_api.config import Config, Surface
from pterodactyl_api.errors import TransportError, map_error
from pterodactyl_api.models.common import RequestBody

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
BINARY_MEDIA_TYPE = "application/octet-stream"


def segment(value: str | int) -> str:
    """
    Encode a user-supplied identifier for use as a single path segment.

    Every reserved character, ``/`` included, is percent-encoded so an
    identifier can never address a different path.

    Example:
        segment("a1b2c3d4")   # "a1b2c3d4"
        segment("../users")   # "..%2Fusers"
    """
    return quote(str(value), safe="")


# =============================================================================
# REQUEST DESCRIPTOR
# =============================================================================


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Everything needed to issue one request.

    Attributes:
        method: HTTP method.
        path: Path relative to the surface base, with identifiers already
              passed through ``segment``.
        body: Typed JSON body, if any.
        params: Query parameters, if any. httpx encodes the values.
        content: Raw body (bytes, text, or an async byte iterable) for
                 endpoints that do not take JSON. Mutually exclusive with body.
    """

    method: str
    path: str
    body: RequestBody | None = None
    params: Mapping[str, Any] | None = None
    content: bytes | str | AsyncIterable[bytes] | None = None

    def __post_init__(self) -> None:
        if self.body is not None and self.content is not None:
            raise ValueError("A request cannot carry both a JSON body and raw content")


# =============================================================================
# RATE LIMITS
# =============================================================================


@dataclass(frozen=True)
class RateLimits:
    """Rate limit state reported by the panel after a request."""

    limit: int
    remaining: int

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> RateLimits | None:
        """Read ``X-RateLimit-Limit``/``-Remaining``; None if either is absent."""
        try:
            return cls(
                limit=int(headers["x-ratelimit-limit"]),
                remaining=int(headers["x-ratelimit-remaining"]),
            )
        except (KeyError, ValueError):
            return None


# =============================================================================
# TRANSPORT
# =============================================================================


class Transport:
    """
    Executes request descriptors against one API surface.

    Attributes:
        config: Credentials and options this transport is bound to.
        surface: The API surface every path is resolved against.
        rate_limits: Last rate limit state observed, or None.
    """

    def __init__(
        self,
        config: Config,
        surface: Surface,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialise the transport.

        Args:
            config: Credentials and options.
            surface: API surface to bind to.
            http_client: Optional pre-built client. The transport does not
                         close a client it did not create.
        """
        self.config = config
        self.surface = surface
        self.rate_limits: RateLimits | None = None
        self._base_url = config.api_base(surface)
        self._http_client = http_client
        self._owns_client = http_client is None

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Transport:
        if self._http_client is None:
            options: dict[str, Any] = {}
            if self.config.timeout is not None:
                options["timeout"] = self.config.timeout
            self._http_client = httpx.AsyncClient(**options)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the connection pool if this transport created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """
        Get the HTTP client, ensuring it's been initialized.

        Raises:
            RuntimeError: If accessed outside of async context manager.
        """
        if self._http_client is None:
            raise RuntimeError(
                "Pterodactyl clients must be used as an async context manager. "
                "Use 'async with ClientBuilder(url, key).client() as api:'"
            )
        return self._http_client

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def url_for(self, path: str) -> str:
        """Resolve a surface-relative path to an absolute URL."""
        if not path:
            return self._base_url
        return f"{self._base_url}/{path.lstrip('/')}"

    def _headers(self, content_type: str = JSON_MEDIA_TYPE) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Accept": JSON_MEDIA_TYPE,
            "Content-Type": content_type,
        }

    def build_request(self, descriptor: RequestDescriptor) -> httpx.Request:
        """Build the httpx request for a descriptor without sending it."""
        if descriptor.content is not None:
            return self.http_client.build_request(
                descriptor.method,
                self.url_for(descriptor.path),
                params=descriptor.params,
                content=descriptor.content,
                headers=self._headers(BINARY_MEDIA_TYPE),
            )

        return self.http_client.build_request(
            descriptor.method,
            self.url_for(descriptor.path),
            params=descriptor.params,
            json=descriptor.body.to_json() if descriptor.body is not None else None,
            headers=self._headers(),
        )

    async def _send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        # Signed URLs carry their token in the query string; log the path only.
        logger.debug("%s %s%s", request.method, request.url.host, request.url.path)
        try:
            return await self.http_client.send(request, stream=stream)
        except httpx.TransportError as e:
            logger.debug("Request to %s failed: %r", request.url.host, e)
            raise TransportError(
                message="Request failed before a response was received",
                detail=f"Cannot reach {request.url.host}: {e!r}",
                cause=e,
            ) from e

    def _observe(self, response: httpx.Response) -> None:
        limits = RateLimits.from_headers(response.headers)
        if limits is not None:
            self.rate_limits = limits

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self, descriptor: RequestDescriptor) -> httpx.Response:
        """
        Send a request and return the fully read response.

        Non-2xx responses are returned, not raised; classifying them is the
        codec's job.

        Raises:
            TransportError: If no response was received.
        """
        response = await self._send(self.build_request(descriptor))
        if response.is_success:
            self._observe(response)
        return response

    @asynccontextmanager
    async def stream(self, descriptor: RequestDescriptor) -> AsyncIterator[httpx.Response]:
        """
        Send a request and yield the response with its body still unread.

        Error statuses are read and raised as the mapped ``PterodactylError``
        before anything is yielded. The response is closed on exit.
        """
        async with self._streamed(self.build_request(descriptor)) as response:
            yield response

    @asynccontextmanager
    async def stream_url(self, url: str) -> AsyncIterator[httpx.Response]:
        """
        Stream a GET of an absolute signed URL.

        Signed URLs carry their own token, so the API key is not sent.
        """
        request = self.http_client.build_request("GET", url)
        async with self._streamed(request) as response:
            yield response

    @asynccontextmanager
    async def _streamed(self, request: httpx.Request) -> AsyncIterator[httpx.Response]:
        response = await self._send(request, stream=True)
        try:
            if not response.is_success:
                body = await response.aread()
                raise map_error(response.status_code, body)
            self._observe(response)
            yield response
        finally:
            await response.aclose()

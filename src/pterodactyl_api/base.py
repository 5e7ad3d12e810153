"""
Base class shared by the Client API and Application API facades.

A facade owns one ``Transport`` bound to one API surface and decodes through
one ``KindRegistry``. Facade methods build a ``RequestDescriptor`` and hand it
to one of the helpers below, which execute it and decode the response:

    - ``_resource``: single resource envelope -> typed model
    - ``_list``: list envelope -> ``Page`` of typed models
    - ``_empty``: any 2xx (usually 204) -> None
    - ``_text``: raw text body (file contents)

Every helper raises a ``PterodactylError`` subclass on failure; nothing is
returned half-decoded.
"""

from __future__ import annotations

from typing import Any, ClassVar, TypeVar

import httpx

from pterodactyl_api.codec import KindRegistry, Page, decode_empty, decode_list, decode_resource
from pterodactyl_api.config import Config, Surface
from pterodactyl_api.errors import map_error
from pterodactyl_api.models.common import Resource
from pterodactyl_api.transport import RateLimits, RequestDescriptor, Transport

T = TypeVar("T", bound=Resource)

DEFAULT_PER_PAGE = 50


def include_params(include: list[str] | tuple[str, ...] | None) -> dict[str, str] | None:
    """Build the ``include`` query parameter, or None when nothing is included."""
    if not include:
        return None
    return {"include": ",".join(include)}


def page_params(page: int, per_page: int) -> dict[str, int]:
    if page < 1:
        raise ValueError("page must be 1 or greater")
    if per_page < 1:
        raise ValueError("per_page must be 1 or greater")
    return {"page": page, "per_page": per_page}


class BaseAPI:
    """
    Common plumbing for one API surface.

    Must be used as an async context manager so the connection pool is
    released:

        async with ApplicationAPI(config) as api:
            nodes = await api.list_nodes()

    Attributes:
        config: Credentials this facade is bound to.
        transport: The transport executing its requests.
    """

    SURFACE: ClassVar[Surface]
    KINDS: ClassVar[KindRegistry]

    def __init__(self, config: Config, http_client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self.transport = Transport(config, self.SURFACE, http_client)

    async def __aenter__(self) -> Any:
        await self.transport.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    @property
    def rate_limits(self) -> RateLimits | None:
        """Rate limit state reported by the panel after the last successful call."""
        return self.transport.rate_limits

    # -------------------------------------------------------------------------
    # Execution helpers
    # -------------------------------------------------------------------------

    async def _resource(self, descriptor: RequestDescriptor, model: type[T]) -> T:
        response = await self.transport.execute(descriptor)
        return decode_resource(response, model, self.KINDS)

    async def _list(self, descriptor: RequestDescriptor, model: type[T]) -> Page[T]:
        response = await self.transport.execute(descriptor)
        return decode_list(response, model, self.KINDS)

    async def _empty(self, descriptor: RequestDescriptor) -> None:
        response = await self.transport.execute(descriptor)
        decode_empty(response)

    async def _text(self, descriptor: RequestDescriptor) -> str:
        response = await self.transport.execute(descriptor)
        if not response.is_success:
            raise map_error(response.status_code, response.content)
        return response.text

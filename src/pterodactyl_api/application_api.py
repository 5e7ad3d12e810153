"""
Application API facade (``/api/application``).

Administrative operations on servers, users, nodes, allocations, nests and
eggs, all addressed by numeric id. Requires an application key (``ptla_...``).

Relationships are requested with ``include`` and read back with
``Resource.related``:

    async with ClientBuilder(url, key).application() as api:
        egg = await api.get_egg(1, 5, include=["variables"])
        for variable in egg.related("variables"):
            print(variable.env_variable)
"""

from __future__ import annotations

import logging

from pterodactyl_api.base import DEFAULT_PER_PAGE, BaseAPI, include_params, page_params
from pterodactyl_api.codec import KindRegistry, Page
from pterodactyl_api.config import Surface
from pterodactyl_api.models.application import (
    Allocation,
    CreateAllocationRequest,
    CreateNodeRequest,
    CreateServerRequest,
    CreateUserRequest,
    Egg,
    EggVariable,
    Location,
    Nest,
    Node,
    Server,
    ServerDatabase,
    ServerVariable,
    Subuser,
    UpdateNodeRequest,
    UpdateUserRequest,
    User,
)
from pterodactyl_api.models.common import NullResource
from pterodactyl_api.transport import RequestDescriptor, segment

logger = logging.getLogger(__name__)


def _path(*parts: str | int) -> str:
    return "/".join(segment(part) for part in parts)


def _list_params(
    page: int, per_page: int, include: list[str] | None = None
) -> dict[str, int | str]:
    params: dict[str, int | str] = dict(page_params(page, per_page))
    params.update(include_params(include) or {})
    return params


class ApplicationAPI(BaseAPI):
    """Typed methods for the Application API."""

    SURFACE = Surface.APPLICATION
    KINDS = KindRegistry(
        Server,
        User,
        Node,
        Allocation,
        Location,
        Nest,
        Egg,
        EggVariable,
        ServerVariable,
        Subuser,
        ServerDatabase,
        NullResource,
    )

    async def __aenter__(self) -> ApplicationAPI:
        await super().__aenter__()
        return self

    # -------------------------------------------------------------------------
    # Servers
    # -------------------------------------------------------------------------

    async def list_servers(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        include: list[str] | None = None,
    ) -> Page[Server]:
        return await self._list(
            RequestDescriptor("GET", "servers", params=_list_params(page, per_page, include)),
            Server,
        )

    async def get_server(self, server_id: int, include: list[str] | None = None) -> Server:
        """
        Get a server by id.

        Args:
            include: Relationships to embed, e.g. ``["allocations", "user"]``.
        """
        return await self._resource(
            RequestDescriptor("GET", _path("servers", server_id), params=include_params(include)),
            Server,
        )

    async def get_server_by_external_id(
        self, external_id: str, include: list[str] | None = None
    ) -> Server:
        return await self._resource(
            RequestDescriptor(
                "GET", _path("servers", "external", external_id), params=include_params(include)
            ),
            Server,
        )

    async def create_server(self, request: CreateServerRequest) -> Server:
        """
        Create a server. Installation continues asynchronously on the node.

        Raises:
            ValidationError: With one field error per rejected attribute.
        """
        server = await self._resource(RequestDescriptor("POST", "servers", body=request), Server)
        logger.info("Created server %s (%s)", server.id, server.identifier)
        return server

    async def suspend_server(self, server_id: int) -> None:
        await self._empty(RequestDescriptor("POST", _path("servers", server_id, "suspend")))

    async def unsuspend_server(self, server_id: int) -> None:
        await self._empty(RequestDescriptor("POST", _path("servers", server_id, "unsuspend")))

    async def reinstall_server(self, server_id: int) -> None:
        await self._empty(RequestDescriptor("POST", _path("servers", server_id, "reinstall")))

    async def delete_server(self, server_id: int) -> None:
        """
        Delete a server.

        Raises:
            ValidationError: If the panel refuses (for example the server still
                has backups). Use ``force_delete_server`` to override.
        """
        await self._empty(RequestDescriptor("DELETE", _path("servers", server_id)))
        logger.info("Deleted server %s", server_id)

    async def force_delete_server(self, server_id: int) -> None:
        """Delete a server even if the node cannot be reached or backups exist."""
        await self._empty(RequestDescriptor("DELETE", _path("servers", server_id, "force")))
        logger.warning("Force-deleted server %s", server_id)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def list_users(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        include: list[str] | None = None,
    ) -> Page[User]:
        return await self._list(
            RequestDescriptor("GET", "users", params=_list_params(page, per_page, include)),
            User,
        )

    async def get_user(self, user_id: int, include: list[str] | None = None) -> User:
        return await self._resource(
            RequestDescriptor("GET", _path("users", user_id), params=include_params(include)),
            User,
        )

    async def create_user(self, request: CreateUserRequest) -> User:
        return await self._resource(RequestDescriptor("POST", "users", body=request), User)

    async def update_user(self, user_id: int, request: UpdateUserRequest) -> User:
        return await self._resource(
            RequestDescriptor("PATCH", _path("users", user_id), body=request), User
        )

    async def delete_user(self, user_id: int) -> None:
        """
        Delete a user.

        Raises:
            ValidationError: If the user still owns servers.
        """
        await self._empty(RequestDescriptor("DELETE", _path("users", user_id)))

    # -------------------------------------------------------------------------
    # Nodes and allocations
    # -------------------------------------------------------------------------

    async def list_nodes(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        include: list[str] | None = None,
    ) -> Page[Node]:
        return await self._list(
            RequestDescriptor("GET", "nodes", params=_list_params(page, per_page, include)),
            Node,
        )

    async def get_node(self, node_id: int, include: list[str] | None = None) -> Node:
        return await self._resource(
            RequestDescriptor("GET", _path("nodes", node_id), params=include_params(include)),
            Node,
        )

    async def create_node(self, request: CreateNodeRequest) -> Node:
        return await self._resource(RequestDescriptor("POST", "nodes", body=request), Node)

    async def update_node(self, node_id: int, request: UpdateNodeRequest) -> Node:
        return await self._resource(
            RequestDescriptor("PATCH", _path("nodes", node_id), body=request), Node
        )

    async def delete_node(self, node_id: int) -> None:
        """
        Delete a node.

        Raises:
            ValidationError: If servers are still assigned to it.
        """
        await self._empty(RequestDescriptor("DELETE", _path("nodes", node_id)))

    async def list_node_allocations(
        self, node_id: int, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> Page[Allocation]:
        return await self._list(
            RequestDescriptor(
                "GET", _path("nodes", node_id, "allocations"), params=page_params(page, per_page)
            ),
            Allocation,
        )

    async def create_node_allocation(self, node_id: int, request: CreateAllocationRequest) -> None:
        """Add allocations for each port or port range in ``request``."""
        await self._empty(
            RequestDescriptor("POST", _path("nodes", node_id, "allocations"), body=request)
        )

    async def delete_allocation(self, node_id: int, allocation_id: int) -> None:
        """
        Delete an unassigned allocation.

        Raises:
            ValidationError: If the allocation is assigned to a server.
        """
        await self._empty(
            RequestDescriptor("DELETE", _path("nodes", node_id, "allocations", allocation_id))
        )

    # -------------------------------------------------------------------------
    # Nests and eggs
    # -------------------------------------------------------------------------

    async def list_nests(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        include: list[str] | None = None,
    ) -> Page[Nest]:
        return await self._list(
            RequestDescriptor("GET", "nests", params=_list_params(page, per_page, include)),
            Nest,
        )

    async def get_nest(self, nest_id: int, include: list[str] | None = None) -> Nest:
        return await self._resource(
            RequestDescriptor("GET", _path("nests", nest_id), params=include_params(include)),
            Nest,
        )

    async def list_eggs(self, nest_id: int, include: list[str] | None = None) -> Page[Egg]:
        """List every egg of a nest."""
        return await self._list(
            RequestDescriptor(
                "GET", _path("nests", nest_id, "eggs"), params=include_params(include)
            ),
            Egg,
        )

    async def get_egg(self, nest_id: int, egg_id: int, include: list[str] | None = None) -> Egg:
        """
        Get an egg.

        Args:
            include: Any of ``nest``, ``servers``, ``config``, ``script``,
                     ``variables``.
        """
        return await self._resource(
            RequestDescriptor(
                "GET", _path("nests", nest_id, "eggs", egg_id), params=include_params(include)
            ),
            Egg,
        )

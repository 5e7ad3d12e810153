"""
Pydantic models for the Application API (``/api/application``).

Application resources are addressed by numeric ids and require an
administrator key. Request models mirror the panel's validation rules only as
far as types go; business rules are left to the panel.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from pterodactyl_api.models.common import (
    FeatureLimits,
    Limits,
    RequestBody,
    Resource,
    ServerContainer,
)

# ============================================================================
# RESOURCES
# ============================================================================


class Server(Resource):
    """A server as seen by an administrator."""

    OBJECT_KIND = "server"

    id: int
    external_id: str | None = None
    uuid: str
    identifier: str
    name: str
    description: str
    status: str | None = None
    suspended: bool
    limits: Limits
    feature_limits: FeatureLimits
    user: int
    node: int
    allocation: int
    nest: int
    egg: int
    container: ServerContainer
    created_at: datetime | None = None
    updated_at: datetime | None = None


class User(Resource):
    """A panel user account."""

    OBJECT_KIND = "user"

    id: int
    external_id: str | None = None
    uuid: str
    username: str
    email: str
    first_name: str
    last_name: str
    language: str = "en"
    root_admin: bool
    two_factor: bool = Field(default=False, alias="2fa")
    created_at: datetime
    updated_at: datetime | None = None


class Node(Resource):
    """A node (machine running the daemon) that hosts servers."""

    OBJECT_KIND = "node"

    id: int
    uuid: str | None = None
    public: bool
    name: str
    description: str | None = None
    location_id: int
    fqdn: str
    scheme: str
    behind_proxy: bool
    maintenance_mode: bool
    memory: int
    memory_overallocate: int
    disk: int
    disk_overallocate: int
    upload_size: int
    daemon_listen: int
    daemon_sftp: int
    daemon_base: str
    created_at: datetime
    updated_at: datetime


class Allocation(Resource):
    """An IP/port pair on a node."""

    OBJECT_KIND = "allocation"

    id: int
    node: int | None = None
    ip: str
    alias: str | None = None
    port: int
    notes: str | None = None
    assigned: bool


class Location(Resource):
    OBJECT_KIND = "location"

    id: int
    short: str
    long: str | None = None
    created_at: datetime
    updated_at: datetime


class Nest(Resource):
    """A group of eggs (e.g. "Minecraft")."""

    OBJECT_KIND = "nest"

    id: int
    uuid: str
    author: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class EggConfig(BaseModel):
    files: Any = None
    startup: Any = None
    stop: str
    logs: Any = None
    file_denylist: list[str] = Field(default_factory=list)
    extends: Any = None


class EggScript(BaseModel):
    privileged: bool
    install: str | None = None
    entry: str
    container: str
    extends: Any = None


class Egg(Resource):
    """
    A server template.

    Relationships available through ``include``: ``nest``, ``servers``,
    ``config``, ``script``, ``variables``.
    """

    OBJECT_KIND = "egg"

    id: int
    uuid: str
    name: str
    nest: int
    author: str
    description: str | None = None
    docker_image: str
    docker_images: dict[str, str] = Field(default_factory=dict)
    config: EggConfig
    startup: str
    script: EggScript
    created_at: datetime
    updated_at: datetime


class EggVariable(Resource):
    """A startup variable definition of an egg."""

    OBJECT_KIND = "egg_variable"

    id: int
    egg_id: int
    name: str
    description: str
    env_variable: str
    default_value: str
    user_viewable: bool
    user_editable: bool
    rules: str
    created_at: datetime
    updated_at: datetime


class ServerVariable(EggVariable):
    """An egg variable as seen on one server, carrying that server's value."""

    OBJECT_KIND = "server_variable"

    server_value: str | None = None


class Subuser(Resource):
    OBJECT_KIND = "subuser"

    id: int
    user_id: int
    server_id: int
    permissions: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None


class ServerDatabase(Resource):
    """A database provisioned for a server on one of the panel's database hosts."""

    OBJECT_KIND = "server_database"

    id: int
    server: int
    host: int
    database: str
    username: str
    remote: str
    max_connections: int | None = None
    created_at: datetime
    updated_at: datetime | None = None


# ============================================================================
# REQUEST BODIES
# ============================================================================


class AllocationSettings(RequestBody):
    default: int
    additional: list[int] | None = None


class CreateServerRequest(RequestBody):
    """
    Request to create a server.

    Attributes:
        user: Owner user id.
        egg: Egg id the server is built from.
        environment: Values for the egg's startup variables.
        allocation: Primary (and optional additional) allocation ids.
    """

    name: str
    user: int
    egg: int
    docker_image: str
    startup: str
    environment: dict[str, str] = Field(default_factory=dict)
    limits: Limits
    feature_limits: FeatureLimits
    allocation: AllocationSettings
    external_id: str | None = None
    description: str | None = None
    start_on_completion: bool | None = None


class CreateUserRequest(RequestBody):
    email: str
    username: str
    first_name: str
    last_name: str
    password: str | None = None
    external_id: str | None = None
    root_admin: bool | None = None
    language: str | None = None


class UpdateUserRequest(RequestBody):
    email: str | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    password: str | None = None
    external_id: str | None = None
    root_admin: bool | None = None
    language: str | None = None


class CreateNodeRequest(RequestBody):
    name: str
    description: str | None = None
    location_id: int
    public: bool | None = None
    fqdn: str
    scheme: str
    behind_proxy: bool | None = None
    memory: int
    memory_overallocate: int
    disk: int
    disk_overallocate: int
    daemon_base: str | None = None
    daemon_sftp: int
    daemon_listen: int
    maintenance_mode: bool | None = None
    upload_size: int | None = None


class UpdateNodeRequest(RequestBody):
    """Partial node update; only fields that are set are sent."""

    name: str | None = None
    description: str | None = None
    location_id: int | None = None
    public: bool | None = None
    fqdn: str | None = None
    scheme: str | None = None
    behind_proxy: bool | None = None
    memory: int | None = None
    memory_overallocate: int | None = None
    disk: int | None = None
    disk_overallocate: int | None = None
    daemon_base: str | None = None
    daemon_sftp: int | None = None
    daemon_listen: int | None = None
    maintenance_mode: bool | None = None
    upload_size: int | None = None


class CreateAllocationRequest(RequestBody):
    """
    Request to add allocations to a node.

    ``ports`` entries are single ports (``"25565"``) or ranges
    (``"25566-25570"``).
    """

    ip: str
    ports: list[str] = Field(min_length=1)
    alias: str | None = None

"""
Pydantic models for the Client API (``/api/client``).

Resource models are decoded from ``attributes`` payloads; request models are
sent as JSON bodies. Client API resources describe servers from the point of
view of the API key's owner, so a ``ClientServer`` is addressed by its short
``identifier`` rather than the numeric id the Application API uses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from pterodactyl_api.models.common import FeatureLimits, Limits, RequestBody, Resource

# ============================================================================
# RESOURCES
# ============================================================================


class SftpDetails(BaseModel):
    """Host and port of the server's SFTP endpoint."""

    ip: str
    port: int


class ClientServer(Resource):
    """
    A server visible to the authenticated user.

    Attributes:
        identifier: Short identifier used in every Client API path.
        internal_id: Numeric id (the Application API's server id).
        server_owner: True if the key's user owns the server.
        status: Lifecycle status (``installing``, ``suspended``, ...) or None.
    """

    OBJECT_KIND = "server"

    server_owner: bool
    identifier: str
    internal_id: int | None = None
    uuid: str
    name: str
    node: str
    is_node_under_maintenance: bool = False
    sftp_details: SftpDetails
    description: str
    limits: Limits
    invocation: str = ""
    docker_image: str = ""
    egg_features: list[str] | None = None
    feature_limits: FeatureLimits
    status: str | None = None
    is_suspended: bool = False
    is_installing: bool = False
    is_transferring: bool = False


class ClientAllocation(Resource):
    """A network allocation assigned to a server."""

    OBJECT_KIND = "allocation"

    id: int
    ip: str
    ip_alias: str | None = None
    port: int
    notes: str | None = None
    is_default: bool


class ClientEggVariable(Resource):
    """A startup variable as exposed to the server's users."""

    OBJECT_KIND = "egg_variable"

    name: str
    description: str
    env_variable: str
    default_value: str
    server_value: str | None = None
    is_editable: bool
    rules: str


class ResourceUsage(BaseModel):
    """Point-in-time resource usage of a running server."""

    memory_bytes: int
    cpu_absolute: float
    disk_bytes: int
    network_rx_bytes: int
    network_tx_bytes: int
    uptime: int = 0


class ServerStats(Resource):
    """Current state and resource usage of a server."""

    OBJECT_KIND = "stats"

    current_state: str
    is_suspended: bool
    resources: ResourceUsage


class Backup(Resource):
    """
    A server backup.

    ``completed_at`` is None while the backup is still running; ``bytes`` is
    the archive size once complete.
    """

    OBJECT_KIND = "backup"

    uuid: str
    name: str
    ignored_files: list[str] = Field(default_factory=list)
    checksum: str | None = None
    bytes: int
    created_at: datetime
    completed_at: datetime | None = None
    is_successful: bool
    is_locked: bool = False


class FileObject(Resource):
    """An entry of a server directory listing."""

    OBJECT_KIND = "file_object"

    name: str
    mode: str
    mode_bits: str = ""
    size: int
    is_file: bool
    is_symlink: bool
    mimetype: str
    created_at: datetime
    modified_at: datetime


class SignedUrl(Resource):
    """A short-lived URL pointing at the node daemon for downloads/uploads."""

    OBJECT_KIND = "signed_url"

    url: str


class WebsocketCredentials(BaseModel):
    """Token and socket URL returned by the console handshake endpoint."""

    token: str
    socket: str


# ============================================================================
# REQUEST BODIES
# ============================================================================


class PowerAction(str, Enum):
    """Power signals accepted by a server."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    KILL = "kill"


class PowerRequest(RequestBody):
    signal: PowerAction


class CommandRequest(RequestBody):
    command: str = Field(min_length=1)


class RenamePair(RequestBody):
    source: str = Field(alias="from")
    target: str = Field(alias="to")


class RenameFilesRequest(RequestBody):
    root: str
    files: list[RenamePair]


class DeleteFilesRequest(RequestBody):
    root: str
    files: list[str] = Field(min_length=1)


class CreateFolderRequest(RequestBody):
    root: str
    name: str = Field(min_length=1)


class CreateBackupRequest(RequestBody):
    """
    Request to create a backup.

    Attributes:
        name: Optional display name; the panel generates one when omitted.
        ignored: Newline-separated paths to exclude from the archive.
        is_locked: Locked backups cannot be deleted until unlocked.
    """

    name: str | None = None
    ignored: str | None = None
    is_locked: bool | None = None

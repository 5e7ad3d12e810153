"""
Typed resource and request models for both API surfaces.

Client API models live in ``models.client``, Application API models in
``models.application``. Both surfaces use some of the same ``object`` tags
(``server``, ``allocation``, ``egg_variable``) with different shapes, which is
why each facade decodes through its own kind registry.
"""

from pterodactyl_api.models.application import (
    Allocation,
    AllocationSettings,
    CreateAllocationRequest,
    CreateNodeRequest,
    CreateServerRequest,
    CreateUserRequest,
    Egg,
    EggConfig,
    EggScript,
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
from pterodactyl_api.models.client import (
    Backup,
    ClientAllocation,
    ClientEggVariable,
    ClientServer,
    CreateBackupRequest,
    FileObject,
    PowerAction,
    ResourceUsage,
    ServerStats,
    SftpDetails,
    SignedUrl,
    WebsocketCredentials,
)
from pterodactyl_api.models.common import (
    FeatureLimits,
    Limits,
    NullResource,
    RequestBody,
    Resource,
    ServerContainer,
)

__all__ = [
    # Common
    "FeatureLimits",
    "Limits",
    "NullResource",
    "RequestBody",
    "Resource",
    "ServerContainer",
    # Client API
    "Backup",
    "ClientAllocation",
    "ClientEggVariable",
    "ClientServer",
    "CreateBackupRequest",
    "FileObject",
    "PowerAction",
    "ResourceUsage",
    "ServerStats",
    "SftpDetails",
    "SignedUrl",
    "WebsocketCredentials",
    # Application API
    "Allocation",
    "AllocationSettings",
    "CreateAllocationRequest",
    "CreateNodeRequest",
    "CreateServerRequest",
    "CreateUserRequest",
    "Egg",
    "EggConfig",
    "EggScript",
    "EggVariable",
    "Location",
    "Nest",
    "Node",
    "Server",
    "ServerDatabase",
    "ServerVariable",
    "Subuser",
    "UpdateNodeRequest",
    "UpdateUserRequest",
    "User",
]

"""Typed async client for the Pterodactyl game-server panel API.

Two facades share one transport and codec:

- ``ClientAPI`` (``/api/client``): servers visible to a user key, their files,
  backups, power state and live console.
- ``ApplicationAPI`` (``/api/application``): administrative management of
  servers, users, nodes, allocations, nests and eggs.

Both are built with ``ClientBuilder``:

    async with ClientBuilder(url, key).client() as api:
        servers = await api.list_servers()

Every failure is raised as a ``PterodactylError`` subclass from
``pterodactyl_api.errors``.

Logging
-------
All modules log through ``logging.getLogger(__name__)`` under the
``pterodactyl_api`` namespace. The library installs only a ``NullHandler``;
configuring output is left to the application.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

from pterodactyl_api.application_api import ApplicationAPI
from pterodactyl_api.builder import ClientBuilder
from pterodactyl_api.client_api import ClientAPI
from pterodactyl_api.codec import Page, Pagination
from pterodactyl_api.config import Config, Surface
from pterodactyl_api.console import ConsoleChannel, ConsoleEvent, ConsoleEventKind, ConsoleState
from pterodactyl_api.errors import (
    ConsoleAuthError,
    ConsoleClosedError,
    FieldError,
    MalformedResponseError,
    NotFoundError,
    PterodactylError,
    RateLimitedError,
    ServerError,
    ShapeMismatchError,
    StreamConsumedError,
    TransportError,
    UnauthorizedError,
    ValidationError,
)
from pterodactyl_api.models import PowerAction
from pterodactyl_api.streams import ByteStream, file_chunks
from pterodactyl_api.transport import RateLimits

# ---------------------------------------------------------------------------
# Package version, read from the installed distribution metadata. Falls back
# to the pyproject.toml version when imported from a source checkout.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("pterodactyl-api")
except PackageNotFoundError:
    __version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    # Facades
    "ApplicationAPI",
    "ClientAPI",
    "ClientBuilder",
    "Config",
    "Surface",
    # Results
    "ByteStream",
    "ConsoleChannel",
    "ConsoleEvent",
    "ConsoleEventKind",
    "ConsoleState",
    "Page",
    "Pagination",
    "PowerAction",
    "RateLimits",
    "file_chunks",
    # Errors
    "ConsoleAuthError",
    "ConsoleClosedError",
    "FieldError",
    "MalformedResponseError",
    "NotFoundError",
    "PterodactylError",
    "RateLimitedError",
    "ServerError",
    "ShapeMismatchError",
    "StreamConsumedError",
    "TransportError",
    "UnauthorizedError",
    "ValidationError",
]

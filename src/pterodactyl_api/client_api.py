"""
Client API facade (``/api/client``).

Operates on the servers the API key's user can see, addressed by their short
identifier. Use a client key (``ptlc_...``):

    async with ClientBuilder(url, key).client() as api:
        page = await api.list_servers()
        for server in page:
            stats = await api.get_resources(server.identifier)
            print(server.name, stats.current_state)

File paths are always sent as query parameters, never spliced into the URL
path, and server identifiers are percent-encoded as single path segments.
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from functools import partial

import httpx

from pterodactyl_api.base import DEFAULT_PER_PAGE, BaseAPI, page_params
from pterodactyl_api.codec import KindRegistry, Page, decode_data
from pterodactyl_api.config import Config, Surface
from pterodactyl_api.console import ConsoleChannel, Connector, websocket_connector
from pterodactyl_api.models.client import (
    Backup,
    ClientAllocation,
    ClientEggVariable,
    ClientServer,
    CommandRequest,
    CreateBackupRequest,
    CreateFolderRequest,
    DeleteFilesRequest,
    FileObject,
    PowerAction,
    PowerRequest,
    RenameFilesRequest,
    RenamePair,
    ServerStats,
    SignedUrl,
    WebsocketCredentials,
)
from pterodactyl_api.streams import DEFAULT_CHUNK_SIZE, ByteStream
from pterodactyl_api.transport import RequestDescriptor, segment


def _server(identifier: str, *rest: str) -> str:
    return "/".join(("servers", segment(identifier), *rest))


class ClientAPI(BaseAPI):
    """
    Typed methods for the Client API.

    Attributes:
        config: Credentials this facade is bound to.
        transport: The transport executing its requests.
    """

    SURFACE = Surface.CLIENT
    KINDS = KindRegistry(
        ClientServer,
        ClientAllocation,
        ClientEggVariable,
        ServerStats,
        Backup,
        FileObject,
        SignedUrl,
    )

    def __init__(
        self,
        config: Config,
        http_client: httpx.AsyncClient | None = None,
        console_connector: Connector = websocket_connector,
    ) -> None:
        """
        Initialise the facade.

        Args:
            config: Panel URL and client API key.
            http_client: Optional pre-built httpx client.
            console_connector: Opens console sockets; fixed for the lifetime
                               of this facade.
        """
        super().__init__(config, http_client)
        self._console_connector = console_connector

    async def __aenter__(self) -> ClientAPI:
        await super().__aenter__()
        return self

    # -------------------------------------------------------------------------
    # Servers
    # -------------------------------------------------------------------------

    async def list_servers(
        self, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> Page[ClientServer]:
        """List one page of the servers visible to the key."""
        return await self._list(
            RequestDescriptor("GET", "", params=page_params(page, per_page)),
            ClientServer,
        )

    async def get_server(self, identifier: str) -> ClientServer:
        """
        Get one server's details.

        Raises:
            NotFoundError: If the server does not exist or is not visible.
        """
        return await self._resource(RequestDescriptor("GET", _server(identifier)), ClientServer)

    async def get_resources(self, identifier: str) -> ServerStats:
        """Get the server's current state and resource usage."""
        return await self._resource(
            RequestDescriptor("GET", _server(identifier, "resources")), ServerStats
        )

    async def send_power_action(self, identifier: str, action: PowerAction) -> None:
        """Start, stop, restart or kill the server."""
        await self._empty(
            RequestDescriptor(
                "POST", _server(identifier, "power"), body=PowerRequest(signal=action)
            )
        )

    async def send_command(self, identifier: str, command: str) -> None:
        """
        Send a console command.

        Raises:
            ServerError: If the server is offline (the panel answers 502).
        """
        await self._empty(
            RequestDescriptor(
                "POST", _server(identifier, "command"), body=CommandRequest(command=command)
            )
        )

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    async def list_files(self, identifier: str, directory: str = "/") -> Page[FileObject]:
        """List a directory. The whole listing is returned in one page."""
        return await self._list(
            RequestDescriptor(
                "GET", _server(identifier, "files", "list"), params={"directory": directory}
            ),
            FileObject,
        )

    async def get_file_contents(self, identifier: str, path: str) -> str:
        """Read a text file. Use ``download_file`` for large or binary files."""
        return await self._text(
            RequestDescriptor("GET", _server(identifier, "files", "contents"), params={"file": path})
        )

    async def write_file(self, identifier: str, path: str, content: str) -> None:
        """Create or overwrite a file with text content."""
        await self._empty(
            RequestDescriptor(
                "POST",
                _server(identifier, "files", "write"),
                params={"file": path},
                content=content,
            )
        )

    async def rename_file(self, identifier: str, root: str, source: str, target: str) -> None:
        """Rename or move ``source`` to ``target``, both relative to ``root``."""
        body = RenameFilesRequest(root=root, files=[RenamePair(source=source, target=target)])
        await self._empty(RequestDescriptor("PUT", _server(identifier, "files", "rename"), body=body))

    async def delete_files(self, identifier: str, root: str, files: list[str]) -> None:
        """Delete files or directories, relative to ``root``."""
        body = DeleteFilesRequest(root=root, files=files)
        await self._empty(RequestDescriptor("POST", _server(identifier, "files", "delete"), body=body))

    async def create_folder(self, identifier: str, root: str, name: str) -> None:
        body = CreateFolderRequest(root=root, name=name)
        await self._empty(
            RequestDescriptor("POST", _server(identifier, "files", "create-folder"), body=body)
        )

    async def download_file(
        self, identifier: str, path: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> ByteStream:
        """
        Open a streamed download of a server file.

        The panel issues a signed daemon URL, which is then streamed. The
        returned stream must be drained or closed.
        """
        signed = await self._resource(
            RequestDescriptor("GET", _server(identifier, "files", "download"), params={"file": path}),
            SignedUrl,
        )
        return await ByteStream.open(self.transport.stream_url(signed.url), chunk_size)

    async def upload_file(
        self, identifier: str, path: str, chunks: AsyncIterable[bytes]
    ) -> None:
        """
        Write a file from an async byte sequence without buffering it.

        Example:
            await api.upload_file("a1b2c3d4", "/plugins/x.jar", file_chunks("x.jar"))
        """
        await self._empty(
            RequestDescriptor(
                "POST",
                _server(identifier, "files", "write"),
                params={"file": path},
                content=chunks,
            )
        )

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    async def list_backups(
        self, identifier: str, page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> Page[Backup]:
        return await self._list(
            RequestDescriptor("GET", _server(identifier, "backups"), params=page_params(page, per_page)),
            Backup,
        )

    async def create_backup(
        self,
        identifier: str,
        name: str | None = None,
        ignored: list[str] | None = None,
        is_locked: bool = False,
    ) -> Backup:
        """
        Start a backup. The returned backup has ``completed_at`` None until
        the daemon finishes.

        Raises:
            ValidationError: If the server's backup limit is reached.
        """
        body = CreateBackupRequest(
            name=name,
            ignored="\n".join(ignored) if ignored else None,
            is_locked=is_locked or None,
        )
        return await self._resource(
            RequestDescriptor("POST", _server(identifier, "backups"), body=body), Backup
        )

    async def get_backup(self, identifier: str, backup_uuid: str) -> Backup:
        return await self._resource(
            RequestDescriptor("GET", _server(identifier, "backups", segment(backup_uuid))), Backup
        )

    async def delete_backup(self, identifier: str, backup_uuid: str) -> None:
        await self._empty(
            RequestDescriptor("DELETE", _server(identifier, "backups", segment(backup_uuid)))
        )

    async def download_backup(
        self, identifier: str, backup_uuid: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> ByteStream:
        """Open a streamed download of a backup archive."""
        signed = await self._resource(
            RequestDescriptor(
                "GET", _server(identifier, "backups", segment(backup_uuid), "download")
            ),
            SignedUrl,
        )
        return await ByteStream.open(self.transport.stream_url(signed.url), chunk_size)

    # -------------------------------------------------------------------------
    # Console
    # -------------------------------------------------------------------------

    async def get_websocket_credentials(self, identifier: str) -> WebsocketCredentials:
        """Issue a short-lived console token and the daemon socket URL."""
        response = await self.transport.execute(
            RequestDescriptor("GET", _server(identifier, "websocket"))
        )
        return decode_data(response, WebsocketCredentials)

    def console(self, identifier: str) -> ConsoleChannel:
        """
        Create a console channel for a server. Nothing is sent until the
        channel is connected (``await channel.connect()`` or ``async with``).
        """
        return ConsoleChannel(
            server=identifier,
            credentials=partial(self.get_websocket_credentials, identifier),
            origin=self.config.panel_url,
            connector=self._console_connector,
        )

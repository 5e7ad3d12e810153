"""
Fluent construction of API facades.

    builder = ClientBuilder("https://panel.example.com", "ptlc_...").with_timeout(10)

    async with builder.client() as api:
        ...

A builder is immutable: every ``with_*`` call returns a new builder, so one
base builder can be shared and specialised safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import httpx

from pterodactyl_api.application_api import ApplicationAPI
from pterodactyl_api.client_api import ClientAPI
from pterodactyl_api.config import Config
from pterodactyl_api.console import Connector, websocket_connector


@dataclass(frozen=True)
class ClientBuilder:
    """
    Collects options for a Client API or Application API facade.

    Attributes:
        panel_url: Base URL of the panel.
        api_key: API key; its kind (``ptlc_``/``ptla_``) decides which facade
                 the panel will accept it for.
        timeout: Request timeout in seconds, or None for the httpx default.
        http_client: Pre-built httpx client to share, or None to let each
                     facade create and own its own.
        console_connector: Opens console sockets for ``ClientAPI.console``.
    """

    panel_url: str
    api_key: str = field(repr=False)
    timeout: float | None = None
    http_client: httpx.AsyncClient | None = field(default=None, repr=False)
    console_connector: Connector = field(default=websocket_connector, repr=False)

    @classmethod
    def from_env(cls) -> ClientBuilder:
        """Start from PTERODACTYL_URL, PTERODACTYL_API_KEY and PTERODACTYL_TIMEOUT."""
        config = Config.from_env()
        return cls(config.panel_url, config.api_key, config.timeout)

    def with_timeout(self, timeout: float | None) -> ClientBuilder:
        return replace(self, timeout=timeout)

    def with_http_client(self, http_client: httpx.AsyncClient) -> ClientBuilder:
        """Share an existing httpx client. The facades will not close it."""
        return replace(self, http_client=http_client)

    def with_console_connector(self, connector: Connector) -> ClientBuilder:
        return replace(self, console_connector=connector)

    def config(self) -> Config:
        """
        Validate the options.

        Raises:
            ValueError: If the URL, key or timeout is invalid.
        """
        return Config(panel_url=self.panel_url, api_key=self.api_key, timeout=self.timeout)

    def client(self) -> ClientAPI:
        """Build a Client API facade (enter it with ``async with``)."""
        return ClientAPI(self.config(), self.http_client, self.console_connector)

    def application(self) -> ApplicationAPI:
        """Build an Application API facade (enter it with ``async with``)."""
        return ApplicationAPI(self.config(), self.http_client)

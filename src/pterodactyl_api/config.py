"""
Configuration for Pterodactyl API clients.

A ``Config`` carries the credentials one client is bound to: the panel URL
and an API key. Values can be given explicitly or read from the environment,
with the following precedence (highest to lowest):

1. Explicit arguments to ``Config.from_env``
2. Environment variables (PTERODACTYL_URL, PTERODACTYL_API_KEY,
   PTERODACTYL_TIMEOUT)
3. Default values (no timeout override)

The configuration is immutable once created. Several clients with different
credentials can coexist because nothing here is global.

Example:
    config = Config(panel_url="https://panel.example.com", api_key="ptlc_...")

    # Or from the environment
    config = Config.from_env()
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit

# =============================================================================
# DEFAULT CONFIGURATION VALUES
# =============================================================================

# None leaves the timeout to httpx's own default.
DEFAULT_TIMEOUT: float | None = None

# Environment variable names for configuration.
ENV_PANEL_URL = "PTERODACTYL_URL"
ENV_API_KEY = "PTERODACTYL_API_KEY"
ENV_TIMEOUT = "PTERODACTYL_TIMEOUT"


class Surface(str, Enum):
    """The two API surfaces of the panel, named after their URL prefix."""

    CLIENT = "client"
    APPLICATION = "application"


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================


@dataclass(frozen=True)
class Config:
    """
    Immutable credentials and transport options for one client.

    Attributes:
        panel_url: Base URL of the panel (e.g. "https://panel.example.com").
                   A trailing slash is removed.
        api_key: Client API key (``ptlc_``) or Application API key (``ptla_``).
                 Never included in the repr.
        timeout: Request timeout in seconds, or None for the httpx default.
    """

    panel_url: str
    api_key: str = field(repr=False)
    timeout: float | None = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        """
        Validate and normalise configuration values.

        Raises:
            ValueError: If the URL is empty or not http(s), the key is empty,
                or the timeout is not positive.
        """
        if not self.panel_url:
            raise ValueError("panel_url cannot be empty")

        scheme = urlsplit(self.panel_url).scheme
        if scheme not in ("http", "https"):
            raise ValueError("panel_url must start with http:// or https://")

        if not self.api_key:
            raise ValueError("api_key cannot be empty")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be a positive number")

        object.__setattr__(self, "panel_url", self.panel_url.rstrip("/"))

    def api_base(self, surface: Surface) -> str:
        """Return the URL prefix of an API surface, without trailing slash."""
        return f"{self.panel_url}/api/{surface.value}"

    @classmethod
    def from_env(
        cls,
        panel_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Config:
        """
        Create a Config from explicit values, falling back to the environment.

        Args:
            panel_url: Overrides PTERODACTYL_URL.
            api_key: Overrides PTERODACTYL_API_KEY.
            timeout: Overrides PTERODACTYL_TIMEOUT.
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ValueError: If a required value is missing or invalid.
        """
        env = os.environ if environ is None else environ

        url = panel_url or env.get(ENV_PANEL_URL, "").strip()
        key = api_key or env.get(ENV_API_KEY, "").strip()

        if timeout is None and env.get(ENV_TIMEOUT, "").strip():
            try:
                timeout = float(env[ENV_TIMEOUT])
            except ValueError as e:
                raise ValueError(f"{ENV_TIMEOUT} must be a number") from e

        return cls(panel_url=url, api_key=key, timeout=timeout)

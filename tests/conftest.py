"""
Shared pytest fixtures for the pterodactyl_api test suite.

Provides a test panel configuration and both facades entered as async
context managers. Envelope and attribute builders live in
``tests/payloads.py``; HTTP traffic is mocked with respx.
"""

from collections.abc import AsyncGenerator

import pytest

from pterodactyl_api.application_api import ApplicationAPI
from pterodactyl_api.client_api import ClientAPI
from pterodactyl_api.config import Config
from tests.payloads import API_KEY, PANEL_URL

# ============================================================================
# CLIENT FIXTURES
# ============================================================================


@pytest.fixture
def config() -> Config:
    """Create a test configuration."""
    return Config(panel_url=PANEL_URL, api_key=API_KEY, timeout=5.0)


@pytest.fixture
async def client_api(config: Config) -> AsyncGenerator[ClientAPI, None]:
    """Create a Client API facade for testing."""
    async with ClientAPI(config) as api:
        yield api


@pytest.fixture
async def application_api(config: Config) -> AsyncGenerator[ApplicationAPI, None]:
    """Create an Application API facade for testing."""
    async with ApplicationAPI(config) as api:
        yield api

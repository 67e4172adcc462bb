"""Shared fixtures"""

import aiohttp
import pytest

from auth_aad.config.settings import AuthorizationSettings
from auth_aad.stores import MemorySessionStore, MemoryUserStore
from auth_aad.tools.types import LocalUser

from .mocks.aad_server import MockAADServer


@pytest.fixture
def aad_server() -> MockAADServer:
    """A fresh mock Azure AD server."""
    return MockAADServer()


@pytest.fixture
def settings() -> AuthorizationSettings:
    """Settings pointing at the mock server."""
    return AuthorizationSettings.from_config(MockAADServer.get_config())


@pytest.fixture
def session() -> MemorySessionStore:
    """An empty browser session."""
    return MemorySessionStore()


@pytest.fixture
def user_store() -> MemoryUserStore:
    """A user store with one existing user."""
    return MemoryUserStore(
        [
            LocalUser(
                id=100,
                login="alice",
                email="alice@contoso.com",
                roles={"subscriber"},
            )
        ]
    )


@pytest.fixture
async def http_session():
    """A real client session, requests are patched by mock_aad_responses."""
    async with aiohttp.ClientSession() as client_session:
        yield client_session

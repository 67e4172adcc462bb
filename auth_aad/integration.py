"""Runtime state shared by the web views of one application."""

import asyncio
import logging
import ssl
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Optional

import aiohttp
from aiohttp import web

from .config.settings import AuthorizationSettings, async_resolve_endpoints
from .orchestrator import AuthContext, AuthenticationOrchestrator
from .stores import SessionStore, UserStore
from .tools.types import LocalUser

_LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[web.Request], SessionStore]
OnAuthenticated = Callable[[web.Request, LocalUser], Awaitable[None]]


async def async_create_http_session(
    settings: AuthorizationSettings,
) -> aiohttp.ClientSession:
    """Creates the client session with the configured TLS options."""
    _LOGGER.debug(
        "Creating HTTP session with options: verify certificates: %r, custom CA file: %s",
        settings.tls_verify,
        settings.tls_ca_path,
    )

    ssl_option: ssl.SSLContext | bool = settings.tls_verify
    if settings.tls_verify and settings.tls_ca_path:
        # Loading the CA file blocks, keep it off the event loop
        ssl_option = await asyncio.get_running_loop().run_in_executor(
            None, partial(ssl.create_default_context, cafile=settings.tls_ca_path)
        )
    return aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=ssl_option))


@dataclass
class AADIntegration:
    """Holds the settings and collaborators the views build each request from."""

    settings: AuthorizationSettings
    user_store: UserStore
    session_factory: SessionFactory
    on_authenticated: Optional[OnAuthenticated] = None
    http_session: Optional[aiohttp.ClientSession] = field(default=None)

    def orchestrator_for(self, request: web.Request) -> AuthenticationOrchestrator:
        """Builds the orchestrator for one request."""
        if self.http_session is None:
            raise RuntimeError("HTTP session is not started")

        context = AuthContext.create(
            self.settings,
            self.session_factory(request),
            self.user_store,
            self.http_session,
        )
        return AuthenticationOrchestrator(context)

    async def cleanup_ctx(self, _app: web.Application):
        """aiohttp cleanup context owning the client session."""
        self.http_session = await async_create_http_session(self.settings)
        try:
            self.settings = await async_resolve_endpoints(
                self.settings, self.http_session
            )
            yield
        finally:
            await self.http_session.close()
            self.http_session = None

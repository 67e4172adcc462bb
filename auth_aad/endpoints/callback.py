"""Callback route to return the user to after Azure AD sign in."""

import logging

from aiohttp import web

from ..integration import AADIntegration
from ..orchestrator import AuthState
from ..views.loader import get_view
from .login import PATH as LOGIN_PATH

PATH = "/auth/aad/callback"

_LOGGER = logging.getLogger(__name__)


class AADCallbackView:
    """Azure AD Callback View."""

    url = PATH
    name = "auth:aad:callback"

    def __init__(self, integration: AADIntegration) -> None:
        self.integration = integration

    async def get(self, request: web.Request) -> web.Response:
        """Receive response."""
        orchestrator = self.integration.orchestrator_for(request)
        result = await orchestrator.handle_callback(request.rel_url.query)

        if result.state is AuthState.ANONYMOUS:
            raise web.HTTPFound(LOGIN_PATH)

        if not result.authenticated:
            error = result.error
            view_html = await get_view(
                "error",
                {
                    "title": "Sign in failed",
                    "error": error.message if error else "Sign in failed.",
                    "retry_url": LOGIN_PATH,
                    "org_display_name": self.integration.settings.org_display_name,
                },
            )
            return web.Response(
                text=view_html,
                content_type="text/html",
                status=error.status if error else 401,
            )

        if self.integration.on_authenticated is not None:
            await self.integration.on_authenticated(request, result.user)

        raise web.HTTPFound(orchestrator.finalize_redirect())

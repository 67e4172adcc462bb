"""Login route to redirect the user to Azure AD."""

import logging

from aiohttp import web

from ..errors import ConfigurationInvalid
from ..integration import AADIntegration
from ..views.loader import get_view

PATH = "/auth/aad/login"

_LOGGER = logging.getLogger(__name__)


class AADLoginView:
    """Azure AD Login View."""

    url = PATH
    name = "auth:aad:login"

    def __init__(self, integration: AADIntegration) -> None:
        self.integration = integration

    async def get(self, request: web.Request) -> web.Response:
        """Redirect to the Azure AD authorization endpoint."""
        orchestrator = self.integration.orchestrator_for(request)

        try:
            auth_url = orchestrator.initiate_login(request.query.get("redirect_to"))
        except ConfigurationInvalid as e:
            _LOGGER.warning("Cannot start login: %s", e)
            view_html = await get_view(
                "error",
                {
                    "title": "Sign in unavailable",
                    "error": "Sign in is not configured, contact your administrator.",
                },
            )
            return web.Response(text=view_html, content_type="text/html", status=500)

        raise web.HTTPFound(auth_url)

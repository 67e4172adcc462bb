"""Logout route, ends the local session and signs out of Azure AD."""

from aiohttp import web

from ..integration import AADIntegration

PATH = "/auth/aad/logout"


class AADLogoutView:
    """Azure AD Logout View."""

    url = PATH
    name = "auth:aad:logout"

    def __init__(self, integration: AADIntegration) -> None:
        self.integration = integration

    async def get(self, request: web.Request) -> web.Response:
        """Destroy the session and redirect to the end-session endpoint."""
        orchestrator = self.integration.orchestrator_for(request)
        logout_url = orchestrator.get_logout_url()
        orchestrator.clear_session()
        raise web.HTTPFound(logout_url)

    async def post(self, request: web.Request) -> web.Response:
        """POST"""
        return await self.get(request)

"""Azure AD single sign-on for aiohttp applications."""

import logging
from typing import Optional

from aiohttp import web

# Import and re-export the public API explicitly
# pylint: disable=useless-import-alias
from .config import (
    CONFIG_SCHEMA as CONFIG_SCHEMA,
    AuthorizationSettings as AuthorizationSettings,
    async_load_settings as async_load_settings,
)
from .config.const import DOMAIN
from .endpoints import AADLoginView, AADCallbackView, AADLogoutView
from .errors import (
    AuthenticationError as AuthenticationError,
    ConfigurationInvalid as ConfigurationInvalid,
)
from .integration import (
    AADIntegration as AADIntegration,
    OnAuthenticated,
    SessionFactory,
)
from .orchestrator import (
    AuthContext as AuthContext,
    AuthenticationOrchestrator as AuthenticationOrchestrator,
    AuthenticationResult as AuthenticationResult,
    AuthState as AuthState,
)
from .stores import UserStore

_LOGGER = logging.getLogger(__name__)

APP_KEY = web.AppKey(DOMAIN, AADIntegration)


async def async_setup(
    app: web.Application,
    config: dict,
    user_store: UserStore,
    session_factory: SessionFactory,
    on_authenticated: Optional[OnAuthenticated] = None,
) -> AADIntegration:
    """Adds the Azure AD login, callback and logout routes to an application.

    Endpoints missing from the config are resolved through discovery when the
    application starts.
    """
    settings = AuthorizationSettings.from_config(config)
    if not settings.is_configured():
        raise ConfigurationInvalid("client_id, client_secret and redirect_uri are required")

    integration = AADIntegration(
        settings=settings,
        user_store=user_store,
        session_factory=session_factory,
        on_authenticated=on_authenticated,
    )
    app[APP_KEY] = integration
    app.cleanup_ctx.append(integration.cleanup_ctx)

    for view in (
        AADLoginView(integration),
        AADCallbackView(integration),
        AADLogoutView(integration),
    ):
        app.router.add_get(view.url, view.get, name=view.name)
        if hasattr(view, "post"):
            app.router.add_post(view.url, view.post)

    _LOGGER.info("Registered Azure AD views for %s", settings.org_display_name)
    return integration

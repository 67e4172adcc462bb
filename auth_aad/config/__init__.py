"""Imports manager"""

from .const import *  # noqa: F403
from .schema import CONFIG_SCHEMA as CONFIG_SCHEMA
from .settings import (
    AuthorizationSettings as AuthorizationSettings,
    async_load_settings as async_load_settings,
    async_resolve_endpoints as async_resolve_endpoints,
)

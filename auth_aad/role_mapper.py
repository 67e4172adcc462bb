"""Derives local roles from Azure AD group membership."""

import logging
from typing import Optional

from .config.settings import AuthorizationSettings
from .errors import NoGroupMatch
from .stores import UserStore
from .tools.directory_client import DirectoryClient
from .tools.types import LocalUser

_LOGGER = logging.getLogger(__name__)


class RoleMapper:
    """Replaces a user's roles with the roles of the mapped groups they belong to."""

    def __init__(self, directory_client: DirectoryClient, user_store: UserStore):
        self.directory_client = directory_client
        self.user_store = user_store

    async def assign_roles(
        self,
        user: LocalUser,
        subject_id: str,
        tenant_id: Optional[str],
        settings: AuthorizationSettings,
    ) -> set[str]:
        """Sets and returns the user's roles, raising NoGroupMatch if none apply."""
        group_map = settings.group_to_role_map
        membership = await self.directory_client.check_group_membership(
            subject_id, list(group_map.keys()), settings, tenant_id
        )

        roles = {role for group_id, role in group_map.items() if group_id in membership}

        if not roles and settings.default_role:
            _LOGGER.debug(
                "User %s is in no mapped group, using default role %s",
                user.id,
                settings.default_role,
            )
            roles = {settings.default_role}

        if not roles:
            raise NoGroupMatch(details={"subject": subject_id, "user": user.id})

        await self.user_store.set_roles(user, roles)
        user.roles = set(roles)
        _LOGGER.info("Assigned roles %s to user %s", sorted(roles), user.id)
        return roles

"""Local user store contract and an in-memory implementation."""

import asyncio
import itertools
import logging
from typing import Iterable, Optional, Protocol

from ..errors import UserAlreadyExists
from ..tools.types import LocalUser

_LOGGER = logging.getLogger(__name__)


class UserStore(Protocol):
    """Accounts of the host application."""

    async def find_by(self, field: str, value: str) -> Optional[LocalUser]:
        """Looks a user up by 'login' or 'email', None when not found."""

    async def create(
        self,
        login: str,
        email: str,
        given_name: Optional[str],
        family_name: Optional[str],
    ) -> LocalUser:
        """Creates a user without a usable password.

        Raises UserAlreadyExists when the login is taken by another user.
        """

    async def set_roles(self, user: LocalUser, roles: Iterable[str]) -> None:
        """Replaces every role of the user."""


class MemoryUserStore:
    """User store keeping users in memory."""

    def __init__(self, users: Iterable[LocalUser] = ()):
        self._users: dict[int, LocalUser] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        for user in users:
            self._users[user.id] = user

    @property
    def users(self) -> list[LocalUser]:
        """All users, in creation order."""
        return list(self._users.values())

    async def find_by(self, field: str, value: str) -> Optional[LocalUser]:
        if field not in ("login", "email"):
            raise ValueError(f"Unsupported lookup field: {field}")

        # Logins and emails compare case insensitive
        value = value.casefold()
        for user in self._users.values():
            if getattr(user, field).casefold() == value:
                return user
        return None

    async def create(
        self,
        login: str,
        email: str,
        given_name: Optional[str] = None,
        family_name: Optional[str] = None,
    ) -> LocalUser:
        async with self._lock:
            if await self.find_by("login", login) is not None:
                raise UserAlreadyExists(login)

            user_id = next(self._ids)
            while user_id in self._users:
                user_id = next(self._ids)

            user = LocalUser(
                id=user_id,
                login=login,
                email=email,
                given_name=given_name,
                family_name=family_name,
            )
            self._users[user_id] = user

        _LOGGER.debug("Created user %s with id %s", login, user_id)
        return user

    async def set_roles(self, user: LocalUser, roles: Iterable[str]) -> None:
        stored = self._users[user.id]
        stored.roles = set(roles)

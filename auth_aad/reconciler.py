"""Maps validated ID token claims to a local user."""

import logging

from .config.settings import AuthorizationSettings
from .errors import MissingIdentityClaim, UserAlreadyExists, UserNotRegistered
from .stores import UserStore
from .tools.types import IdentityClaims, LocalUser

_LOGGER = logging.getLogger(__name__)


class IdentityReconciler:
    """Finds, or optionally provisions, the local user for a set of claims."""

    def __init__(self, user_store: UserStore):
        self.user_store = user_store

    async def resolve(
        self, claims: IdentityClaims, settings: AuthorizationSettings
    ) -> LocalUser:
        """Returns the local user the claims identify.

        The user is looked up by the configured field using the full 'upn'
        (or 'unique_name'). With alias matching enabled the part from
        '@<org domain hint>' onward is stripped and the lookup repeated. This
        second lookup is weaker: the same alias under two different domains
        resolves to the same local user.
        """
        login = claims.login_claim
        if not login:
            raise MissingIdentityClaim(details={"subject": claims.subject})

        field = settings.field_to_match_to_upn
        user = await self.user_store.find_by(field, login)

        if user is None and settings.match_on_upn_alias and settings.org_domain_hint:
            alias = login.split("@" + settings.org_domain_hint)[0]
            if alias != login:
                _LOGGER.debug("No user with %s %s, trying alias %s", field, login, alias)
                user = await self.user_store.find_by(field, alias)

        if user is not None:
            _LOGGER.debug("Matched %s to local user %s", login, user.id)
            return user

        if not settings.enable_auto_provisioning:
            _LOGGER.info("Rejected %s, no local user and provisioning disabled", login)
            raise UserNotRegistered(details={"login": login, "field": field})

        # No password is set, Azure AD remains the only way to sign in
        try:
            user = await self.user_store.create(
                login, login, claims.given_name, claims.family_name
            )
        except UserAlreadyExists as e:
            # The login belongs to a user the configured field did not match
            _LOGGER.warning("Cannot provision %s, login is taken by another user", login)
            raise UserNotRegistered(
                details={"login": login, "field": field, "reason": "login_taken"}
            ) from e
        _LOGGER.info("Provisioned local user %s for %s", user.id, login)
        return user

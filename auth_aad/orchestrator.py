"""Authentication state machine for the Azure AD authorization code flow."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import aiohttp

from .config.const import (
    SESSION_ANTIFORGERY_KEY,
    SESSION_NONCE_KEY,
    SESSION_REDIRECT_KEY,
)
from .config.settings import AuthorizationSettings
from .errors import (
    AntiforgeryMismatch,
    AuthenticationError,
    ConfigurationInvalid,
    InvalidIdToken,
    MalformedCallback,
    ProviderError,
    TokenValidationError,
)
from .reconciler import IdentityReconciler
from .role_mapper import RoleMapper
from .stores import SessionStore, UserStore
from .tools.directory_client import DirectoryClient
from .tools.helpers import constant_time_equals, generate_random_url_string
from .tools.token_validator import JWKSKeyResolver, TokenValidator
from .tools.types import IdentityClaims, LocalUser
from .tools.validation import is_safe_redirect

_LOGGER = logging.getLogger(__name__)


class AuthState(Enum):
    """Steps of one login attempt."""

    ANONYMOUS = "anonymous"
    REDIRECTED_TO_IDP = "redirected_to_idp"
    AWAITING_CALLBACK = "awaiting_callback"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    ID_TOKEN_VALIDATED = "id_token_validated"
    IDENTITY_RESOLVED = "identity_resolved"
    ROLES_ASSIGNED = "roles_assigned"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass
class AuthenticationResult:
    """Outcome of handling a callback."""

    state: AuthState
    user: Optional[LocalUser] = None
    error: Optional[AuthenticationError] = None
    claims: Optional[IdentityClaims] = None

    @property
    def authenticated(self) -> bool:
        """Whether a session may be established for the user."""
        return self.state is AuthState.AUTHENTICATED and self.user is not None


@dataclass
class AuthContext:
    """Everything one request needs, passed explicitly instead of kept globally."""

    settings: AuthorizationSettings
    session: SessionStore
    user_store: UserStore
    directory_client: DirectoryClient
    key_resolver: Optional[JWKSKeyResolver] = field(default=None)

    @classmethod
    def create(
        cls,
        settings: AuthorizationSettings,
        session: SessionStore,
        user_store: UserStore,
        http_session: aiohttp.ClientSession,
        key_resolver: Optional[JWKSKeyResolver] = None,
    ) -> "AuthContext":
        """Builds a context with a fresh directory client."""
        return cls(
            settings=settings,
            session=session,
            user_store=user_store,
            directory_client=DirectoryClient(http_session),
            key_resolver=key_resolver,
        )


def _single_param(query_params: Mapping[str, Any], name: str) -> Optional[str]:
    """Returns a query parameter that must occur at most once."""
    if hasattr(query_params, "getall"):
        values = query_params.getall(name, [])
    else:
        value = query_params.get(name)
        if value is None:
            values = []
        elif isinstance(value, (list, tuple)):
            values = list(value)
        else:
            values = [value]

    if not values:
        return None
    if len(values) != 1 or not isinstance(values[0], str):
        raise MalformedCallback(details={"parameter": name, "count": len(values)})
    return values[0]


class AuthenticationOrchestrator:
    """Drives a login from the redirect to Azure AD until roles are assigned.

    Construct one per request. The anti-forgery token and the intended
    destination live in the session store, never on this object.
    """

    def __init__(
        self,
        context: AuthContext,
        token_validator: Optional[TokenValidator] = None,
        reconciler: Optional[IdentityReconciler] = None,
        role_mapper: Optional[RoleMapper] = None,
    ):
        self.context = context
        settings = context.settings

        if token_validator is None:
            key_resolver = context.key_resolver or JWKSKeyResolver(
                context.directory_client, settings.jwks_uri, settings.timeout
            )
            token_validator = TokenValidator(key_resolver)

        self.token_validator = token_validator
        self.reconciler = reconciler or IdentityReconciler(context.user_store)
        self.role_mapper = role_mapper or RoleMapper(
            context.directory_client, context.user_store
        )
        self.state = AuthState.ANONYMOUS

    @property
    def settings(self) -> AuthorizationSettings:
        return self.context.settings

    @property
    def session(self) -> SessionStore:
        return self.context.session

    def _transition(self, state: AuthState) -> None:
        _LOGGER.debug("Login state %s -> %s", self.state.value, state.value)
        self.state = state

    def _save_redirect(self, redirect_to: Optional[str]) -> None:
        """Stores the intended destination, only when it stays on this site."""
        if redirect_to is None:
            return
        if is_safe_redirect(redirect_to, self.settings.site_host):
            self.session.set(SESSION_REDIRECT_KEY, redirect_to)
        else:
            _LOGGER.warning("Ignoring unsafe post-login redirect %r", redirect_to)

    def initiate_login(self, redirect_to: Optional[str] = None) -> str:
        """Starts a login attempt and returns the Azure AD authorization URL.

        The anti-forgery token is written to the session before the URL is
        returned, so it is always stored before the browser is redirected.
        """
        settings = self.settings
        if not settings.is_configured() or not settings.authorization_endpoint:
            raise ConfigurationInvalid("Azure AD sign in is not configured")

        self.session.start()
        antiforgery_id = generate_random_url_string()
        nonce = generate_random_url_string()
        self.session.set(SESSION_ANTIFORGERY_KEY, antiforgery_id)
        self.session.set(SESSION_NONCE_KEY, nonce)
        self._save_redirect(redirect_to)

        query_params = {
            "response_type": "code",
            "client_id": settings.client_id,
            "redirect_uri": settings.redirect_uri,
            "scope": settings.scope,
            "state": antiforgery_id,
            "nonce": nonce,
        }
        if settings.org_domain_hint:
            query_params["domain_hint"] = settings.org_domain_hint

        endpoint = settings.authorization_endpoint
        separator = "&" if "?" in endpoint else "?"
        self._transition(AuthState.REDIRECTED_TO_IDP)
        return f"{endpoint}{separator}{urlencode(query_params)}"

    async def handle_callback(
        self,
        query_params: Mapping[str, Any],
        current_user: Optional[LocalUser] = None,
    ) -> AuthenticationResult:
        """Handles the redirect back from Azure AD.

        Every failure ends in the REJECTED state with the error attached;
        the error's message is safe to show, its details are only logged.
        """
        try:
            return await self._handle_callback(query_params, current_user)
        except AuthenticationError as e:
            _LOGGER.warning(
                "Login rejected in state %s: %s", self.state.value, e.get_detail_string()
            )
            self._transition(AuthState.REJECTED)
            return AuthenticationResult(AuthState.REJECTED, error=e)

    async def _handle_callback(
        self, query_params: Mapping[str, Any], current_user: Optional[LocalUser]
    ) -> AuthenticationResult:
        settings = self.settings
        self._transition(AuthState.AWAITING_CALLBACK)

        error = _single_param(query_params, "error")
        if error is not None:
            raise ProviderError(
                error, _single_param(query_params, "error_description")
            )

        code = _single_param(query_params, "code")
        if code is None:
            if current_user is not None:
                self._transition(AuthState.AUTHENTICATED)
                return AuthenticationResult(AuthState.AUTHENTICATED, user=current_user)
            # Not an Azure AD callback, leave other login methods alone
            self._transition(AuthState.ANONYMOUS)
            return AuthenticationResult(AuthState.ANONYMOUS)
        if not code:
            raise MalformedCallback(details={"parameter": "code", "reason": "empty"})

        self._transition(AuthState.CODE_RECEIVED)

        expected_state = self.session.get(SESSION_ANTIFORGERY_KEY)
        returned_state = _single_param(query_params, "state")
        if not constant_time_equals(expected_state, returned_state):
            raise AntiforgeryMismatch(
                details={"expected": expected_state, "received": returned_state}
            )

        token_response = await self.context.directory_client.exchange_code_for_tokens(
            code, settings
        )
        if token_response.is_error:
            raise ProviderError(
                token_response.error, token_response.error_description
            )
        self._transition(AuthState.TOKEN_EXCHANGED)

        try:
            claims = await self.token_validator.validate(
                token_response.id_token,
                settings,
                expected_nonce=self.session.get(SESSION_NONCE_KEY),
            )
        except TokenValidationError as e:
            raise InvalidIdToken(e) from e
        self._transition(AuthState.ID_TOKEN_VALIDATED)

        user = await self.reconciler.resolve(claims, settings)
        self._transition(AuthState.IDENTITY_RESOLVED)

        if settings.enable_group_to_role:
            subject_id = claims.object_id or claims.login_claim
            await self.role_mapper.assign_roles(
                user, subject_id, claims.tenant_id, settings
            )
            self._transition(AuthState.ROLES_ASSIGNED)

        self._transition(AuthState.AUTHENTICATED)
        _LOGGER.info("User %s signed in as %s", claims.login_claim, user.id)
        return AuthenticationResult(AuthState.AUTHENTICATED, user=user, claims=claims)

    def finalize_redirect(self) -> str:
        """Returns where to send the user after a successful login."""
        target = self.session.get(SESSION_REDIRECT_KEY)
        self.session.set(SESSION_REDIRECT_KEY, None)

        if target and is_safe_redirect(target, self.settings.site_host):
            return target
        return self.settings.default_redirect

    def get_logout_url(self) -> str:
        """Returns the Azure AD end-session URL for signing out."""
        post_logout = self.settings.logout_redirect_uri or self.settings.site_root
        endpoint = self.settings.end_session_endpoint
        if not endpoint:
            return post_logout

        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode({'post_logout_redirect_uri': post_logout})}"

    def register_session(self) -> None:
        """Makes sure a session exists before anything is stored in it."""
        self.session.start()

    def clear_session(self) -> None:
        """Destroys the session on logout."""
        self.session.destroy()

    @staticmethod
    def wants_to_login(query_params: Mapping[str, Any]) -> bool:
        """Whether a login page request is an attempt to sign in."""
        if "loggedout" in query_params:
            return False
        return query_params.get("action", "login") == "login"

    def save_redirect_and_maybe_bypass_login(
        self, query_params: Mapping[str, Any]
    ) -> Optional[str]:
        """Remembers 'redirect_to' and returns the Azure AD URL when auto forward is on."""
        if not self.wants_to_login(query_params):
            return None

        self.register_session()
        redirect_to = query_params.get("redirect_to")
        if self.settings.enable_auto_forward and "code" not in query_params:
            return self.initiate_login(redirect_to)

        self._save_redirect(redirect_to)
        return None

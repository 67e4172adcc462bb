"""Immutable per-request authorization settings."""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional
from urllib.parse import urlparse

import aiohttp
import voluptuous as vol

from ..errors import ConfigurationInvalid
from ..tools.discovery import DiscoveryClient
from .schema import CONFIG_SCHEMA
from .const import (
    CLIENT_ID,
    CLIENT_SECRET,
    REDIRECT_URI,
    DISCOVERY_URL,
    AUTHORIZATION_ENDPOINT,
    TOKEN_ENDPOINT,
    END_SESSION_ENDPOINT,
    JWKS_URI,
    ISSUER,
    AUDIENCE,
    SCOPE,
    ID_TOKEN_SIGNING_ALGORITHMS,
    CLOCK_SKEW,
    ORG_DISPLAY_NAME,
    ORG_DOMAIN_HINT,
    FIELD_TO_MATCH_TO_UPN,
    MATCH_ON_UPN_ALIAS,
    ENABLE_AUTO_PROVISIONING,
    ENABLE_AUTO_FORWARD,
    ENABLE_GROUP_TO_ROLE,
    GROUP_TO_ROLE_MAP,
    DEFAULT_ROLE,
    LOGOUT_REDIRECT_URI,
    DEFAULT_REDIRECT,
    DIRECTORY,
    DIRECTORY_ENDPOINT,
    DIRECTORY_TOKEN_ENDPOINT,
    DIRECTORY_SCOPE,
    NETWORK,
    NETWORK_TIMEOUT,
    NETWORK_TLS_VERIFY,
    NETWORK_TLS_CA_PATH,
    NETWORK_MEMBERSHIP_RETRIES,
    NETWORK_RETRY_BACKOFF,
    DEBUG,
    DEFAULT_TITLE,
    DEFAULT_DIRECTORY_ENDPOINT,
    DEFAULT_DIRECTORY_TOKEN_ENDPOINT,
    DEFAULT_DIRECTORY_SCOPE,
)

_LOGGER = logging.getLogger(__name__)


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True)
class AuthorizationSettings:
    """Settings for one authentication cycle, never mutated once loaded."""

    client_id: str
    client_secret: str
    redirect_uri: str
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    end_session_endpoint: Optional[str] = None
    jwks_uri: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    discovery_url: Optional[str] = None
    scope: str = "openid profile email"
    id_token_signing_algs: tuple[str, ...] = ("RS256",)
    clock_skew: int = 300
    org_display_name: str = DEFAULT_TITLE
    org_domain_hint: Optional[str] = None
    field_to_match_to_upn: str = "email"
    match_on_upn_alias: bool = False
    enable_auto_provisioning: bool = False
    enable_auto_forward: bool = False
    enable_group_to_role: bool = False
    group_to_role_map: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    default_role: Optional[str] = None
    logout_redirect_uri: Optional[str] = None
    default_redirect: str = "/"
    directory_endpoint: str = DEFAULT_DIRECTORY_ENDPOINT
    directory_token_endpoint: str = DEFAULT_DIRECTORY_TOKEN_ENDPOINT
    directory_scope: str = DEFAULT_DIRECTORY_SCOPE
    timeout: float = 10
    tls_verify: bool = True
    tls_ca_path: Optional[str] = None
    membership_retries: int = 2
    retry_backoff: float = 0.5
    debug: bool = False

    @classmethod
    def from_config(cls, config: dict) -> "AuthorizationSettings":
        """Validates a raw config dict and freezes it into settings."""
        try:
            config = CONFIG_SCHEMA(config)
        except vol.Invalid as e:
            raise ConfigurationInvalid(f"Invalid configuration: {e}") from e

        directory = config[DIRECTORY]
        network = config[NETWORK]

        return cls(
            client_id=config[CLIENT_ID],
            client_secret=config[CLIENT_SECRET],
            redirect_uri=config[REDIRECT_URI],
            authorization_endpoint=config.get(AUTHORIZATION_ENDPOINT),
            token_endpoint=config.get(TOKEN_ENDPOINT),
            end_session_endpoint=config.get(END_SESSION_ENDPOINT),
            jwks_uri=config.get(JWKS_URI),
            issuer=config.get(ISSUER),
            audience=config.get(AUDIENCE) or config[CLIENT_ID],
            discovery_url=config.get(DISCOVERY_URL),
            scope=config[SCOPE],
            id_token_signing_algs=tuple(config[ID_TOKEN_SIGNING_ALGORITHMS]),
            clock_skew=config[CLOCK_SKEW],
            org_display_name=config.get(ORG_DISPLAY_NAME) or DEFAULT_TITLE,
            org_domain_hint=config.get(ORG_DOMAIN_HINT) or None,
            field_to_match_to_upn=config[FIELD_TO_MATCH_TO_UPN],
            match_on_upn_alias=config[MATCH_ON_UPN_ALIAS],
            enable_auto_provisioning=config[ENABLE_AUTO_PROVISIONING],
            enable_auto_forward=config[ENABLE_AUTO_FORWARD],
            enable_group_to_role=config[ENABLE_GROUP_TO_ROLE],
            group_to_role_map=MappingProxyType(dict(config[GROUP_TO_ROLE_MAP])),
            # An empty default role counts as not configured
            default_role=config.get(DEFAULT_ROLE) or None,
            logout_redirect_uri=config.get(LOGOUT_REDIRECT_URI),
            default_redirect=config[DEFAULT_REDIRECT],
            directory_endpoint=directory[DIRECTORY_ENDPOINT].rstrip("/"),
            directory_token_endpoint=directory[DIRECTORY_TOKEN_ENDPOINT],
            directory_scope=directory[DIRECTORY_SCOPE],
            timeout=network[NETWORK_TIMEOUT],
            tls_verify=network[NETWORK_TLS_VERIFY],
            tls_ca_path=network.get(NETWORK_TLS_CA_PATH),
            membership_retries=network[NETWORK_MEMBERSHIP_RETRIES],
            retry_backoff=network[NETWORK_RETRY_BACKOFF],
            debug=config[DEBUG],
        )

    def is_configured(self) -> bool:
        """Whether the client credentials and redirect URI are all set."""
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    @property
    def site_host(self) -> str:
        """Host of the redirect URI, the only host trusted for redirects."""
        return urlparse(self.redirect_uri).netloc

    @property
    def site_root(self) -> str:
        """Root URL of the site the redirect URI belongs to."""
        parsed = urlparse(self.redirect_uri)
        return f"{parsed.scheme}://{parsed.netloc}/"

    def missing_endpoints(self) -> list[str]:
        """Names of the endpoints still required before a login can complete."""
        required = {
            AUTHORIZATION_ENDPOINT: self.authorization_endpoint,
            TOKEN_ENDPOINT: self.token_endpoint,
            JWKS_URI: self.jwks_uri,
            ISSUER: self.issuer,
        }
        return [name for name, value in required.items() if not value]

    def with_discovery(self, document: dict) -> "AuthorizationSettings":
        """Returns a copy where unset endpoints are taken from a discovery document."""
        return replace(
            self,
            authorization_endpoint=self.authorization_endpoint
            or document.get("authorization_endpoint"),
            token_endpoint=self.token_endpoint or document.get("token_endpoint"),
            end_session_endpoint=self.end_session_endpoint
            or document.get("end_session_endpoint"),
            jwks_uri=self.jwks_uri or document.get("jwks_uri"),
            issuer=self.issuer or document.get("issuer"),
        )


async def async_resolve_endpoints(
    settings: AuthorizationSettings, http_session: aiohttp.ClientSession
) -> AuthorizationSettings:
    """Fills in missing endpoints through discovery and checks none are left out."""
    if settings.missing_endpoints() and settings.discovery_url:
        discovery = DiscoveryClient(
            settings.discovery_url, http_session, timeout=settings.timeout
        )
        document = await discovery.fetch_discovery_document()
        settings = settings.with_discovery(document)
        _LOGGER.debug("Resolved endpoints from discovery %s", settings.discovery_url)

    missing = settings.missing_endpoints()
    if missing:
        raise ConfigurationInvalid(
            "Missing endpoints, set them explicitly or configure a discovery URL: "
            + ", ".join(missing)
        )

    if settings.debug:
        _LOGGER.warning(
            "Debug mode is enabled so decoded token claims are logged. "
            + "Do NOT leave this enabled in production!"
        )
    return settings


async def async_load_settings(
    config: dict, http_session: aiohttp.ClientSession
) -> AuthorizationSettings:
    """Loads settings from config, resolving missing endpoints through discovery."""
    settings = AuthorizationSettings.from_config(config)
    return await async_resolve_endpoints(settings, http_session)

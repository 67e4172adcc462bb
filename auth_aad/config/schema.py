"""Config schema"""

import voluptuous as vol
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
    DEFAULT_SCOPE,
    DEFAULT_ID_TOKEN_SIGNING_ALGORITHM,
    DEFAULT_CLOCK_SKEW,
    MAX_CLOCK_SKEW,
    DEFAULT_REDIRECT_PATH,
    DEFAULT_DIRECTORY_ENDPOINT,
    DEFAULT_DIRECTORY_TOKEN_ENDPOINT,
    DEFAULT_DIRECTORY_SCOPE,
    DEFAULT_TIMEOUT,
    DEFAULT_MEMBERSHIP_RETRIES,
    MAX_MEMBERSHIP_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    MATCH_FIELDS,
    DEFAULT_MATCH_FIELD,
    SUPPORTED_SIGNING_ALGORITHMS,
)
from ..tools.validation import validate_client_id, validate_url, sanitize_client_secret


def Url(value):  # pylint: disable=invalid-name
    """Validates an absolute http(s) URL."""
    if not isinstance(value, str) or not validate_url(value):
        raise vol.Invalid(f"expected an absolute http(s) URL, got {value!r}")
    return value.strip()


def ClientId(value):  # pylint: disable=invalid-name
    """Validates and strips the application (client) ID."""
    if not isinstance(value, str) or not validate_client_id(value):
        raise vol.Invalid("client_id must not be empty")
    return value.strip()


def GroupMap(value):  # pylint: disable=invalid-name
    """Validates the group id to role mapping, keeping the configured order."""
    if isinstance(value, (list, tuple)):
        # Also accept a list of single-entry mappings, which keeps order in YAML
        pairs = []
        for item in value:
            if not isinstance(item, dict):
                raise vol.Invalid("group mapping entries must be mappings")
            pairs.extend(item.items())
    elif isinstance(value, dict):
        pairs = list(value.items())
    else:
        raise vol.Invalid("expected a mapping of group id to role")

    mapping = {}
    for group_id, role in pairs:
        group_id = str(group_id).strip()
        role = str(role).strip()
        if not group_id or not role:
            raise vol.Invalid("group ids and roles must not be empty")
        mapping[group_id] = role
    return mapping


def SigningAlgorithms(value):  # pylint: disable=invalid-name
    """Validates the ID token signing algorithm allow-list."""
    if isinstance(value, str):
        value = [alg.strip() for alg in value.split(",")]
    if not isinstance(value, (list, tuple)) or not value:
        raise vol.Invalid("expected a non-empty list of signing algorithms")
    for alg in value:
        if alg not in SUPPORTED_SIGNING_ALGORITHMS:
            raise vol.Invalid(f"signing algorithm {alg!r} is not allowed")
    return list(value)


CONFIG_SCHEMA = vol.Schema(
    {
        # Application (client) ID as registered in Azure AD
        vol.Required(CLIENT_ID): vol.All(vol.Coerce(str), ClientId),
        # Client secret, this integration always runs as a confidential client
        vol.Required(CLIENT_SECRET): vol.All(vol.Coerce(str), sanitize_client_secret),
        # Where Azure AD sends the user back to, must be registered for the app
        vol.Required(REDIRECT_URI): Url,
        # Optional discovery URL, fills in any endpoint not set explicitly
        vol.Optional(DISCOVERY_URL): Url,
        vol.Optional(AUTHORIZATION_ENDPOINT): Url,
        vol.Optional(TOKEN_ENDPOINT): Url,
        vol.Optional(END_SESSION_ENDPOINT): Url,
        vol.Optional(JWKS_URI): Url,
        vol.Optional(ISSUER): vol.Coerce(str),
        # Defaults to the client ID
        vol.Optional(AUDIENCE): vol.Coerce(str),
        vol.Optional(SCOPE, default=DEFAULT_SCOPE): vol.Coerce(str),
        vol.Optional(
            ID_TOKEN_SIGNING_ALGORITHMS, default=[DEFAULT_ID_TOKEN_SIGNING_ALGORITHM]
        ): SigningAlgorithms,
        # Allowed clock difference in seconds for exp, nbf and iat
        vol.Optional(CLOCK_SKEW, default=DEFAULT_CLOCK_SKEW): vol.All(
            vol.Coerce(int), vol.Range(min=0, max=MAX_CLOCK_SKEW)
        ),
        # Which name should be shown on the login screens?
        vol.Optional(ORG_DISPLAY_NAME): vol.Coerce(str),
        # Domain hint sent to Azure AD, also the suffix stripped for alias matching
        vol.Optional(ORG_DOMAIN_HINT): vol.Coerce(str),
        vol.Optional(FIELD_TO_MATCH_TO_UPN, default=DEFAULT_MATCH_FIELD): vol.In(
            MATCH_FIELDS
        ),
        vol.Optional(MATCH_ON_UPN_ALIAS, default=False): vol.Coerce(bool),
        vol.Optional(ENABLE_AUTO_PROVISIONING, default=False): vol.Coerce(bool),
        # Skip the local login form and go to Azure AD directly
        vol.Optional(ENABLE_AUTO_FORWARD, default=False): vol.Coerce(bool),
        vol.Optional(ENABLE_GROUP_TO_ROLE, default=False): vol.Coerce(bool),
        vol.Optional(GROUP_TO_ROLE_MAP, default={}): GroupMap,
        vol.Optional(DEFAULT_ROLE): vol.Any(None, vol.Coerce(str)),
        vol.Optional(LOGOUT_REDIRECT_URI): Url,
        vol.Optional(DEFAULT_REDIRECT, default=DEFAULT_REDIRECT_PATH): vol.Coerce(str),
        # Directory (Microsoft Graph) options used for group membership checks
        vol.Optional(DIRECTORY, default={}): vol.Schema(
            {
                vol.Optional(
                    DIRECTORY_ENDPOINT, default=DEFAULT_DIRECTORY_ENDPOINT
                ): Url,
                # May contain a {tenant_id} placeholder
                vol.Optional(
                    DIRECTORY_TOKEN_ENDPOINT, default=DEFAULT_DIRECTORY_TOKEN_ENDPOINT
                ): vol.Coerce(str),
                vol.Optional(DIRECTORY_SCOPE, default=DEFAULT_DIRECTORY_SCOPE): vol.Coerce(
                    str
                ),
            }
        ),
        # Network options
        vol.Optional(NETWORK, default={}): vol.Schema(
            {
                vol.Optional(NETWORK_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
                    vol.Coerce(float), vol.Range(min=1)
                ),
                # Verify x509 certificates provided when starting TLS connections
                vol.Optional(NETWORK_TLS_VERIFY, default=True): vol.Coerce(bool),
                # Load custom certificate chain for private CAs
                vol.Optional(NETWORK_TLS_CA_PATH): vol.Coerce(str),
                # Retries for membership lookups only, the code exchange never retries
                vol.Optional(
                    NETWORK_MEMBERSHIP_RETRIES, default=DEFAULT_MEMBERSHIP_RETRIES
                ): vol.All(vol.Coerce(int), vol.Range(min=0, max=MAX_MEMBERSHIP_RETRIES)),
                vol.Optional(NETWORK_RETRY_BACKOFF, default=DEFAULT_RETRY_BACKOFF): vol.All(
                    vol.Coerce(float), vol.Range(min=0)
                ),
            }
        ),
        # Logs decoded token claims at debug level, do not leave enabled in production
        vol.Optional(DEBUG, default=False): vol.Coerce(bool),
    },
    # Any extra fields should not go into our config right now
    extra=vol.REMOVE_EXTRA,
)

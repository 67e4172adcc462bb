"""Config constants."""

## ===
## General constants
## ===

DEFAULT_TITLE = "Azure AD (SSO)"
DOMAIN = "auth_aad"

## ===
## Config keys
## ===

CLIENT_ID = "client_id"
CLIENT_SECRET = "client_secret"
REDIRECT_URI = "redirect_uri"
DISCOVERY_URL = "discovery_url"
AUTHORIZATION_ENDPOINT = "authorization_endpoint"
TOKEN_ENDPOINT = "token_endpoint"
END_SESSION_ENDPOINT = "end_session_endpoint"
JWKS_URI = "jwks_uri"
ISSUER = "issuer"
AUDIENCE = "audience"
SCOPE = "scope"
ID_TOKEN_SIGNING_ALGORITHMS = "id_token_signing_algs"
CLOCK_SKEW = "clock_skew"
ORG_DISPLAY_NAME = "org_display_name"
ORG_DOMAIN_HINT = "org_domain_hint"
FIELD_TO_MATCH_TO_UPN = "field_to_match_to_upn"
MATCH_ON_UPN_ALIAS = "match_on_upn_alias"
ENABLE_AUTO_PROVISIONING = "enable_auto_provisioning"
ENABLE_AUTO_FORWARD = "enable_auto_forward"
ENABLE_GROUP_TO_ROLE = "enable_group_to_role"
GROUP_TO_ROLE_MAP = "group_to_role_map"
DEFAULT_ROLE = "default_role"
LOGOUT_REDIRECT_URI = "logout_redirect_uri"
DEFAULT_REDIRECT = "default_redirect"
DIRECTORY = "directory"
DIRECTORY_ENDPOINT = "endpoint"
DIRECTORY_TOKEN_ENDPOINT = "token_endpoint"
DIRECTORY_SCOPE = "scope"
NETWORK = "network"
NETWORK_TIMEOUT = "timeout"
NETWORK_TLS_VERIFY = "tls_verify"
NETWORK_TLS_CA_PATH = "tls_ca_path"
NETWORK_MEMBERSHIP_RETRIES = "membership_retries"
NETWORK_RETRY_BACKOFF = "retry_backoff"
DEBUG = "debug"

## ===
## Defaults
## ===

DEFAULT_SCOPE = "openid profile email"
DEFAULT_ID_TOKEN_SIGNING_ALGORITHM = "RS256"
DEFAULT_CLOCK_SKEW = 300
MAX_CLOCK_SKEW = 300
DEFAULT_REDIRECT_PATH = "/"
DEFAULT_DIRECTORY_ENDPOINT = "https://graph.microsoft.com/v1.0"
DEFAULT_DIRECTORY_TOKEN_ENDPOINT = (
    "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
)
DEFAULT_DIRECTORY_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_TIMEOUT = 10
DEFAULT_MEMBERSHIP_RETRIES = 2
MAX_MEMBERSHIP_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 0.5

MATCH_FIELDS = ("login", "email")
DEFAULT_MATCH_FIELD = "email"

# Only asymmetric algorithms, the ID token is never verified with the client secret
SUPPORTED_SIGNING_ALGORITHMS = (
    "RS256",
    "RS384",
    "RS512",
    "PS256",
    "PS384",
    "PS512",
    "ES256",
    "ES384",
    "ES512",
)

## ===
## Session keys
## ===

SESSION_ANTIFORGERY_KEY = "aadsso_antiforgery-id"
SESSION_NONCE_KEY = "aadsso_nonce"
SESSION_REDIRECT_KEY = "aadsso_redirect_to"

"""A simple mock Azure AD (and Microsoft Graph) server for testing purposes."""

from contextlib import contextmanager
import json
import logging
import random
import time
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import urlparse, parse_qs

from joserfc import jwt
from joserfc.jwk import RSAKey, KeySet

from auth_aad.config.const import (
    CLIENT_ID,
    CLIENT_SECRET,
    REDIRECT_URI,
    AUTHORIZATION_ENDPOINT,
    TOKEN_ENDPOINT,
    END_SESSION_ENDPOINT,
    JWKS_URI,
    ISSUER,
    NETWORK,
    NETWORK_RETRY_BACKOFF,
)

_LOGGER = logging.getLogger(__name__)

TENANT_ID = "8f3c0d1e-5a2b-4c7d-9e10-2b3c4d5e6f70"
LOGIN_URL = "https://login.microsoftonline.com"
BASE_URL = f"{LOGIN_URL}/{TENANT_ID}"
ISSUER_URL = f"{BASE_URL}/v2.0"
GRAPH_URL = "https://graph.microsoft.com/v1.0"

EXAMPLE_CLIENT_ID = "6731de76-14a6-49ae-97bc-6eba6914391e"
EXAMPLE_CLIENT_SECRET = "dummy-secret"
EXAMPLE_REDIRECT_URI = "https://www.contoso.com/auth/aad/callback"
SERVICE_TOKEN = "exampleGraphToken"


class MockAADServer:
    """A simple mock Azure AD server for testing purposes."""

    def __init__(self):
        """Initialize the mock server."""
        # Create a JWK private key
        self._jwk = RSAKey.generate_key(
            2048, {"alg": "RS256", "use": "sig"}, private=True, auto_kid=True
        )
        self._code_storage: dict[str, dict] = {}

        # Claims put into ID tokens, tests may change them
        self.user_claims = {
            "upn": "alice@contoso.com",
            "unique_name": "alice@contoso.com",
            "given_name": "Alice",
            "family_name": "Smith",
            "oid": "00000000-0000-0000-0000-00000000a11c",
        }
        # Group memberships by user object id or upn
        self.memberships: dict[str, list[str]] = {}
        # Number of groups returned per checkMemberGroups page, None for one page
        self.page_size: int | None = None
        # Statuses, exceptions or raw bodies returned by the next directory calls
        self.directory_failures: list = []
        # expires_in sent with the client credentials token
        self.service_token_expires_in = 3599

        self.token_requests: list[dict] = []
        self.directory_requests: list[dict] = []

    def get_random_code(self):
        """Return a random authorization code."""
        return "".join(str(random.randint(0, 9)) for _ in range(12))

    @staticmethod
    def get_discovery_url():
        """Return the discovery URL."""
        return f"{ISSUER_URL}/.well-known/openid-configuration"

    @staticmethod
    def get_authorize_url():
        """Return the authorization URL."""
        return f"{BASE_URL}/oauth2/v2.0/authorize"

    @staticmethod
    def get_token_url():
        """Return the token URL, used for both code and client credential grants."""
        return f"{BASE_URL}/oauth2/v2.0/token"

    @staticmethod
    def get_jwks_url():
        """Return the JWKS URL."""
        return f"{BASE_URL}/discovery/v2.0/keys"

    @staticmethod
    def get_logout_url():
        """Return the end session URL."""
        return f"{BASE_URL}/oauth2/v2.0/logout"

    @staticmethod
    def get_config(**overrides) -> dict:
        """Return a config pointing at this server with explicit endpoints."""
        config = {
            CLIENT_ID: EXAMPLE_CLIENT_ID,
            CLIENT_SECRET: EXAMPLE_CLIENT_SECRET,
            REDIRECT_URI: EXAMPLE_REDIRECT_URI,
            AUTHORIZATION_ENDPOINT: MockAADServer.get_authorize_url(),
            TOKEN_ENDPOINT: MockAADServer.get_token_url(),
            END_SESSION_ENDPOINT: MockAADServer.get_logout_url(),
            JWKS_URI: MockAADServer.get_jwks_url(),
            ISSUER: ISSUER_URL,
            # No real waiting between retries in tests
            NETWORK: {NETWORK_RETRY_BACKOFF: 0},
        }
        config.update(overrides)
        return config

    def issue_code(self, client_id: str = EXAMPLE_CLIENT_ID, nonce: str | None = None):
        """Issue an authorization code as if the user signed in."""
        code = self.get_random_code()
        self._code_storage[code] = {"client_id": client_id, "nonce": nonce}
        return code

    def process_request(
        self, url: str, method: str, body: dict | None, headers: dict | None = None
    ) -> tuple[dict, int]:
        """Process a request to the mock server."""
        _LOGGER.debug("Received %s request to %s in Azure AD mock server", method, url)

        if url == self.get_discovery_url() and method == "GET":
            response = self._get_discovery_document()
        elif url.startswith(self.get_authorize_url()) and method == "GET":
            response = self._get_authorize_response(url)
        elif url == self.get_token_url() and method == "POST":
            response = self._get_token_response(body or {})
        elif url == self.get_jwks_url() and method == "GET":
            response = self._get_jwks_response()
        elif url.startswith(f"{GRAPH_URL}/users/") and method == "POST":
            response = self._get_member_groups_response(url, body or {}, headers or {})
        else:
            response = {"error": "Unknown endpoint"}, 404

        _LOGGER.debug("Responding with: %s", response)
        return response

    def _get_discovery_document(self) -> tuple[dict, int]:
        """Return a mock discovery document."""
        return {
            "issuer": ISSUER_URL,
            "authorization_endpoint": self.get_authorize_url(),
            "token_endpoint": self.get_token_url(),
            "end_session_endpoint": self.get_logout_url(),
            "jwks_uri": self.get_jwks_url(),
            "response_modes_supported": ["query", "fragment", "form_post"],
            "response_types_supported": ["code", "id_token", "code id_token"],
            "id_token_signing_alg_values_supported": ["RS256"],
        }, 200

    def _get_authorize_response(self, url: str) -> tuple[dict, int]:
        """Return a mock authorization response."""
        query_params = parse_qs(urlparse(url).query)
        code = self.issue_code(
            query_params.get("client_id", [""])[0],
            query_params.get("nonce", [None])[0],
        )
        return {"code": code, "state": query_params.get("state", [""])[0]}, 200

    def _get_token_response(self, body: dict) -> tuple[dict, int]:
        """Return a mock token response."""
        self.token_requests.append(dict(body))

        if body.get("client_secret") != EXAMPLE_CLIENT_SECRET:
            return {
                "error": "invalid_client",
                "error_description": "AADSTS7000215: Invalid client secret provided.",
            }, 401

        if body.get("grant_type") == "client_credentials":
            return {
                "token_type": "Bearer",
                "expires_in": self.service_token_expires_in,
                "access_token": SERVICE_TOKEN,
            }, 200

        # Codes can only be redeemed once
        flow = self._code_storage.pop(body.get("code"), None)
        if flow is None:
            return {
                "error": "invalid_grant",
                "error_description": "AADSTS54005: OAuth2 Authorization code was already redeemed.",
            }, 400

        return {
            "access_token": "exampleAccessToken",
            "token_type": "Bearer",
            "expires_in": 3600,
            "id_token": self.create_id_token(
                {"aud": flow["client_id"], "nonce": flow["nonce"]}
            ),
        }, 200

    def create_id_token(
        self,
        claims: dict | None = None,
        header: dict | None = None,
        key: RSAKey | None = None,
    ) -> str:
        """Create a signed ID token, claims with a None value are left out."""
        now = int(time.time())
        token_claims = {
            "iss": ISSUER_URL,
            "sub": "AAAAAAAAAAAAAAAAAAAAAIkzqFVrSaSaFHy782bbtaQ",
            "aud": EXAMPLE_CLIENT_ID,
            "tid": TENANT_ID,
            "nbf": now,
            "iat": now,
            "exp": now + 3600,
            **self.user_claims,
        }
        token_claims.update(claims or {})
        token_claims = {k: v for k, v in token_claims.items() if v is not None}

        signing_key = key or self._jwk
        token_header = {"alg": "RS256", "kid": signing_key.kid, "typ": "JWT"}
        token_header.update(header or {})

        return jwt.encode(token_header, token_claims, signing_key)

    def _get_jwks_response(self) -> tuple[dict, int]:
        """Return a mock JWKS response."""
        private_key = self._jwk
        public_key = RSAKey.import_key(
            private_key.as_dict(private=False),
            {"use": "sig", "alg": "RS256", "kid": private_key.kid},
        )
        return KeySet([public_key]).as_dict(), 200

    def _get_member_groups_response(
        self, url: str, body: dict, headers: dict
    ) -> tuple[dict, int]:
        """Return a mock checkMemberGroups response."""
        self.directory_requests.append({"url": url, "body": body, "headers": headers})

        if self.directory_failures:
            failure = self.directory_failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            if isinstance(failure, dict):
                return failure, 200
            return {"error": {"code": "Failure", "message": "Simulated"}}, failure

        if headers.get("Authorization") != f"Bearer {SERVICE_TOKEN}":
            return {"error": {"code": "InvalidAuthenticationToken"}}, 401

        parsed = urlparse(url)
        subject = parsed.path.split("/users/", 1)[1].split("/", 1)[0]
        members = self.memberships.get(subject, [])
        matched = [group for group in body.get("groupIds", []) if group in members]

        if self.page_size is None:
            return {"value": matched}, 200

        skip = int(parse_qs(parsed.query).get("$skiptoken", ["0"])[0])
        page = matched[skip : skip + self.page_size]
        response = {"value": page}
        if skip + self.page_size < len(matched):
            base = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
            response["@odata.nextLink"] = f"{base}?$skiptoken={skip + self.page_size}"
        return response, 200


def make_mock_response(json_data, status):
    """Build a mocked aiohttp response usable as an async context manager."""
    mock_response = AsyncMock()
    mock_response.__aenter__.return_value = mock_response
    mock_response.__aexit__.return_value = None
    mock_response.json = AsyncMock(return_value=json_data)
    mock_response.text = AsyncMock(return_value=json.dumps(json_data))
    mock_response.status = status
    mock_response.ok = 200 <= status < 300
    mock_response.reason = "OK" if mock_response.ok else "Error"
    mock_response.request_info = MagicMock()
    mock_response.history = ()
    mock_response.headers = {"Content-Type": "application/json"}
    return mock_response


@contextmanager
def mock_aad_responses(server: MockAADServer | None = None):
    """Mock Azure AD and Graph responses for testing."""

    mock_server = server or MockAADServer()

    def default_handler(method, url, *args, **kwargs):
        _LOGGER.debug("Mocked %s request to %s", method, url)
        body = kwargs.get("data") or kwargs.get("json") or None
        response = mock_server.process_request(
            url, method, body, kwargs.get("headers")
        )
        return make_mock_response(response[0], response[1])

    def get_side_effect(url, *args, **kwargs):
        return default_handler("GET", url, *args, **kwargs)

    def post_side_effect(url, *args, **kwargs):
        return default_handler("POST", url, *args, **kwargs)

    with (
        patch("aiohttp.ClientSession.get", side_effect=get_side_effect) as get_patch,
        patch("aiohttp.ClientSession.post", side_effect=post_side_effect) as post_patch,
    ):
        yield mock_server, get_patch, post_patch

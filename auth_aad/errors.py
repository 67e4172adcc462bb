"""Exceptions raised while authenticating a user against Azure AD."""

from typing import Optional

import aiohttp


class AuthenticationError(Exception):
    "Base class of every terminal failure of a login attempt."

    kind: str = "unknown"
    message: str = "Authentication failed, please try again."
    status: int = 401

    details: Optional[dict]

    def __init__(self, message: Optional[str] = None, **kwargs):
        if message is not None:
            self.message = message
        self.details = kwargs.pop("details", None)
        super().__init__(self.message)

    def get_detail_string(self) -> str:
        """Returns a detailed string for logging purposes."""
        string = [f"kind: {self.kind}"]

        if self.details:
            for key, value in self.details.items():
                string.append(f"{key}: {value}")

        return ", ".join(string)


class AntiforgeryMismatch(AuthenticationError):
    "Raised when the returned state does not match the anti-forgery token in the session."

    kind = "antiforgery_mismatch"
    message = "Your login attempt could not be verified, please sign in again."


class IdpUnreachable(AuthenticationError):
    "Raised when the identity provider or directory API cannot be reached."

    kind = "idp_unreachable"
    message = "The identity provider could not be reached, please try again later."
    status = 502


class ProviderError(AuthenticationError):
    "Raised when the identity provider answers with an error code."

    kind = "provider_error"

    def __init__(self, code: str, description: Optional[str] = None, **kwargs):
        self.code = code
        self.description = description
        message = f"The identity provider returned an error: {code}"
        if description:
            message += f" ({description})"
        super().__init__(message, **kwargs)


class InvalidIdToken(AuthenticationError):
    "Raised when the ID token fails validation."

    kind = "invalid_id_token"
    message = "The identity token could not be verified."

    def __init__(self, reason: "TokenValidationError", **kwargs):
        self.reason = reason
        details = kwargs.pop("details", None) or {}
        details.setdefault("reason", reason.kind)
        details.setdefault("detail", str(reason))
        super().__init__(details=details, **kwargs)


class MissingIdentityClaim(AuthenticationError):
    "Raised when neither 'upn' nor 'unique_name' is present in the ID token."

    kind = "missing_identity_claim"
    message = "The identity token does not identify a user."


class UserNotRegistered(AuthenticationError):
    "Raised when no local user matches and auto-provisioning is disabled."

    kind = "user_not_registered"
    message = "No account exists for this user, contact your administrator."
    status = 403


class UserAlreadyExists(Exception):
    "Raised by a user store when a new user's login is already taken."

    def __init__(self, login: str):
        self.login = login
        super().__init__(f"User {login} already exists")


class NoGroupMatch(AuthenticationError):
    "Raised when the user is not a member of any mapped group and no default role is set."

    kind = "no_group_match"
    message = "You are not a member of a group that grants access, contact your administrator."
    status = 403


class MalformedCallback(AuthenticationError):
    "Raised when the callback query parameters cannot be interpreted."

    kind = "malformed_callback"
    message = "The login response was malformed, please sign in again."
    status = 400


class TokenValidationError(Exception):
    "Base class of the ID token validation failure kinds."

    kind: str = "token_invalid"


class SignatureInvalid(TokenValidationError):
    "Raised when the signature or its algorithm cannot be accepted."

    kind = "signature_invalid"


class TokenExpired(TokenValidationError):
    "Raised when the token 'exp' lies in the past beyond the allowed skew."

    kind = "token_expired"


class TokenNotYetValid(TokenValidationError):
    "Raised when 'nbf' or 'iat' lies in the future beyond the allowed skew."

    kind = "token_not_yet_valid"


class MalformedToken(TokenValidationError):
    "Raised when the token is not a well formed compact JWS."

    kind = "malformed_token"


class ClaimMismatch(TokenValidationError):
    "Raised when issuer, audience, nonce or another required claim does not match."

    kind = "claim_mismatch"


class ConfigurationInvalid(Exception):
    "Raised when the settings cannot be used to authenticate."


class DiscoveryInvalid(ConfigurationInvalid):
    "Raised when the discovery document is not found, invalid or otherwise malformed."

    type: Optional[str]
    details: Optional[dict]

    def __init__(self, **kwargs):
        self.message = "OpenID Connect discovery document is invalid"
        self.type = kwargs.pop("type", None)
        self.details = kwargs.pop("details", None)
        super().__init__(self.message)

    def get_detail_string(self) -> str:
        """Returns a detailed string for logging purposes."""
        string = []

        if self.type:
            string.append(f"type: {self.type}")

        if self.details:
            for key, value in self.details.items():
                string.append(f"{key}: {value}")

        return ", ".join(string)


class HTTPClientError(aiohttp.ClientResponseError):
    "Raised when the HTTP client encounters not OK (200) status code."

    body: str

    def __init__(self, *args, **kwargs):
        self.body = kwargs.pop("body")
        super().__init__(*args, **kwargs)

    def __str__(self):
        return f"{self.status} ({self.message}) with response body: {self.body}"


async def http_raise_for_status(response: aiohttp.ClientResponse) -> None:
    """Raises an exception if the response is not OK."""
    if not response.ok:
        body = await response.text()

        raise HTTPClientError(
            response.request_info,
            response.history,
            status=response.status,
            message=response.reason or "",
            headers=response.headers,
            body=body,
        )

"""ID token (JWT) validation"""

import json
import logging
import time
from typing import Optional

from joserfc import jwk, jwt, errors as joserfc_errors

from ..config.settings import AuthorizationSettings
from ..errors import (
    ClaimMismatch,
    MalformedToken,
    SignatureInvalid,
    TokenExpired,
    TokenNotYetValid,
)
from .directory_client import DirectoryClient
from .helpers import base64url_decode, constant_time_equals
from .types import IdentityClaims

_LOGGER = logging.getLogger(__name__)


class JWKSKeyResolver:
    """Resolves signing keys by key id from the provider's published key set.

    The key set is fetched on first use and refreshed once when a token names a
    key id that is not in the cached set, which covers key rotation.
    """

    def __init__(
        self, directory_client: DirectoryClient, jwks_uri: str, timeout: float = 10
    ):
        self.directory_client = directory_client
        self.jwks_uri = jwks_uri
        self.timeout = timeout
        self._keys: Optional[list[dict]] = None

    async def _refresh(self) -> None:
        jwks = await self.directory_client.fetch_jwks(self.jwks_uri, self.timeout)
        self._keys = [key for key in jwks["keys"] if isinstance(key, dict)]

    def _find(self, kid: Optional[str], alg: str) -> Optional[dict]:
        for key in self._keys or []:
            if key.get("use", "sig") != "sig":
                continue
            if kid is not None and key.get("kid") != kid:
                continue
            if key.get("alg") not in (None, alg):
                continue
            return key
        return None

    async def get_key(self, kid: Optional[str], alg: str) -> Optional[dict]:
        """Returns the JWK for the given key id, or None if the provider has none."""
        if self._keys is None:
            await self._refresh()
            return self._find(kid, alg)

        key = self._find(kid, alg)
        if key is None:
            _LOGGER.debug("Signing key %s not cached, refreshing JWKS", kid)
            await self._refresh()
            key = self._find(kid, alg)
        return key


def _split_token(id_token: str) -> tuple[dict, dict]:
    """Checks the compact serialization and returns the decoded header and payload."""
    if not isinstance(id_token, str) or not id_token:
        raise MalformedToken("ID token is missing")

    segments = id_token.split(".")
    if len(segments) != 3:
        raise MalformedToken(f"Expected 3 segments, got {len(segments)}")

    header_segment, payload_segment, signature_segment = segments
    if not signature_segment:
        raise MalformedToken("Signature segment is empty")

    try:
        header = json.loads(base64url_decode(header_segment))
        payload = json.loads(base64url_decode(payload_segment))
        base64url_decode(signature_segment)
    except ValueError as e:
        raise MalformedToken(f"Segment is not base64url encoded JSON: {e}") from e

    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise MalformedToken("Header and payload must be JSON objects")
    return header, payload


class TokenValidator:
    """Validates ID tokens issued for this client.

    Checks run in order and stop at the first failure: structure, signature
    (with an algorithm allow-list), then claims. Each failure is raised as
    one of the TokenValidationError kinds.
    """

    def __init__(self, key_resolver: JWKSKeyResolver):
        self.key_resolver = key_resolver

    async def validate(
        self,
        id_token: str,
        settings: AuthorizationSettings,
        expected_nonce: Optional[str] = None,
    ) -> IdentityClaims:
        """Validates the token and returns its typed claims."""
        header, _ = _split_token(id_token)

        # Obtain the signing algorithm from the header of the id_token
        alg = header.get("alg")
        if not alg or alg not in settings.id_token_signing_algs:
            _LOGGER.warning(
                "ID Token received signed with unsupported algorithm: %s (allowed: %s)",
                alg,
                settings.id_token_signing_algs,
            )
            raise SignatureInvalid(f"Algorithm {alg!r} is not allowed")

        kid = header.get("kid")
        key_data = await self.key_resolver.get_key(kid, alg)
        if key_data is None:
            raise SignatureInvalid(f"No signing key found for kid {kid!r}")

        try:
            key = jwk.import_key(key_data)
            decoded_token = jwt.decode(id_token, key, algorithms=[alg])
        except joserfc_errors.JoseError as e:
            raise SignatureInvalid(f"Signature verification failed: {e}") from e
        except ValueError as e:
            raise SignatureInvalid(f"Signing key could not be used: {e}") from e

        claims = decoded_token.claims
        if settings.debug:
            _LOGGER.debug("Decoded ID token header %s and claims %s", header, claims)

        id_token_validator = jwt.JWTClaimsRegistry(
            leeway=settings.clock_skew,
            iss={"essential": True, "value": settings.issuer},
            aud={"essential": True, "value": settings.audience},
            exp={"essential": True},
            sub={"essential": True},
        )

        try:
            id_token_validator.validate(claims)
        except joserfc_errors.ExpiredTokenError as e:
            raise TokenExpired("Token has expired") from e
        except joserfc_errors.InvalidClaimError as e:
            if getattr(e, "claim", None) in ("nbf", "iat"):
                raise TokenNotYetValid(f"Token is not yet valid ({e.claim})") from e
            raise ClaimMismatch(str(e)) from e
        except joserfc_errors.MissingClaimError as e:
            raise ClaimMismatch(str(e)) from e

        issued_at = claims.get("iat")
        if (
            isinstance(issued_at, (int, float))
            and issued_at > time.time() + settings.clock_skew
        ):
            raise TokenNotYetValid("Token is issued in the future")

        if expected_nonce is not None and not constant_time_equals(
            expected_nonce, claims.get("nonce")
        ):
            raise ClaimMismatch("Nonce does not match the login attempt")

        return IdentityClaims.from_dict(claims)

"""Token endpoint and directory (Microsoft Graph) client"""

import asyncio
import logging
import time
from typing import Iterable, Optional
from urllib.parse import quote

import aiohttp

from ..config.settings import AuthorizationSettings
from ..errors import (
    HTTPClientError,
    IdpUnreachable,
    ProviderError,
    http_raise_for_status,
)
from .types import GroupMembershipResult, TokenResponse

_LOGGER = logging.getLogger(__name__)

# checkMemberGroups accepts at most 20 group ids per call
MEMBERSHIP_CHUNK_SIZE = 20

# Refresh the service token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60

TRANSIENT_STATUSES = (408, 429, 500, 502, 503, 504)


def _is_transient(error: Exception) -> bool:
    """Whether a failed directory call may succeed when repeated."""
    if isinstance(error, HTTPClientError):
        return error.status in TRANSIENT_STATUSES
    return isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError))


async def _read_json(response: aiohttp.ClientResponse):
    try:
        return await response.json(content_type=None)
    except ValueError as e:
        raise aiohttp.ClientPayloadError("Response body is not valid JSON") from e


def _chunks(values: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class DirectoryClient:
    """Calls the token endpoint and the directory API on behalf of one request.

    Every call takes the settings it needs as an argument. The only state kept
    on the instance is the service token for directory calls, so create one
    client per request (or share one per settings object).
    """

    def __init__(self, http_session: aiohttp.ClientSession):
        self.http_session = http_session
        self._service_tokens: dict[str, tuple[str, float]] = {}

    async def exchange_code_for_tokens(
        self, code: str, settings: AuthorizationSettings
    ) -> TokenResponse:
        """Exchanges an authorization code for tokens.

        The code is single use, so this call is never repeated. Connection
        errors and timeouts raise IdpUnreachable, errors reported by the
        provider are returned in the TokenResponse.
        """
        query_params = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": settings.client_id,
            "client_secret": settings.client_secret,
            "redirect_uri": settings.redirect_uri,
        }

        try:
            async with self.http_session.post(
                settings.token_endpoint,
                data=query_params,
                timeout=aiohttp.ClientTimeout(total=settings.timeout),
            ) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _LOGGER.warning(
                "Token endpoint %s unreachable: %r", settings.token_endpoint, e
            )
            raise IdpUnreachable(
                details={"endpoint": settings.token_endpoint, "error": repr(e)}
            ) from e

        if not isinstance(body, dict):
            _LOGGER.warning(
                "Token endpoint %s returned status %s without a JSON object",
                settings.token_endpoint,
                status,
            )
            return TokenResponse(
                error="invalid_token_response",
                error_description=f"Unexpected token endpoint response (HTTP {status}).",
            )

        token_response = TokenResponse.from_dict(body)
        if token_response.is_error:
            _LOGGER.warning(
                "Token endpoint returned error %s (HTTP %s): %s",
                token_response.error,
                status,
                token_response.error_description,
            )
        return token_response

    async def fetch_jwks(self, jwks_uri: str, timeout: float = 10) -> dict:
        """Fetches the provider's published signing keys."""
        try:
            async with self.http_session.get(
                jwks_uri, timeout=aiohttp.ClientTimeout(total=timeout)
            ) as response:
                await http_raise_for_status(response)
                jwks = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            _LOGGER.warning("Error fetching JWKS from %s: %s", jwks_uri, e)
            raise IdpUnreachable(details={"endpoint": jwks_uri, "error": repr(e)}) from e

        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            _LOGGER.warning("JWKS at %s has no 'keys' list", jwks_uri)
            raise IdpUnreachable(details={"endpoint": jwks_uri, "error": "invalid_jwks"})
        return jwks

    async def check_group_membership(
        self,
        subject_id: str,
        candidate_group_ids: list[str],
        settings: AuthorizationSettings,
        tenant_id: Optional[str] = None,
    ) -> GroupMembershipResult:
        """Returns which of the candidate groups the subject is a member of."""
        candidates = list(dict.fromkeys(candidate_group_ids))
        if not candidates:
            return GroupMembershipResult(subject_id)

        url = (
            f"{settings.directory_endpoint}/users/{quote(subject_id, safe='@')}"
            "/checkMemberGroups"
        )
        matched: set[str] = set()

        for chunk in _chunks(candidates, MEMBERSHIP_CHUNK_SIZE):
            page_url: Optional[str] = url
            while page_url:
                body = await self._with_retries(
                    settings, self._post_directory, page_url, chunk, settings, tenant_id
                )
                matched.update(str(group_id) for group_id in body["value"])
                page_url = body.get("@odata.nextLink")

        result = GroupMembershipResult(
            subject_id, tuple(group_id for group_id in candidates if group_id in matched)
        )
        _LOGGER.debug(
            "User %s is a member of %d of %d candidate groups",
            subject_id,
            len(result.group_ids),
            len(candidates),
        )
        return result

    async def _with_retries(self, settings: AuthorizationSettings, func, *args):
        """Runs an idempotent directory call, retrying transient failures."""
        attempt = 0
        while True:
            try:
                return await func(*args)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if not _is_transient(e):
                    status = getattr(e, "status", None)
                    _LOGGER.warning("Directory call failed permanently: %s", e)
                    raise ProviderError(
                        "directory_error",
                        f"Directory request failed (HTTP {status}).",
                        details={"error": str(e)},
                    ) from e

                if attempt >= settings.membership_retries:
                    _LOGGER.warning(
                        "Directory call failed after %d attempts: %r", attempt + 1, e
                    )
                    raise IdpUnreachable(
                        details={"attempts": attempt + 1, "error": repr(e)}
                    ) from e

                delay = settings.retry_backoff * (2**attempt)
                attempt += 1
                _LOGGER.info(
                    "Transient directory failure (%r), retry %d in %.1fs",
                    e,
                    attempt,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _post_directory(
        self,
        url: str,
        group_ids: list[str],
        settings: AuthorizationSettings,
        tenant_id: Optional[str],
    ) -> dict:
        """Performs one checkMemberGroups POST."""
        token = await self._get_service_token(settings, tenant_id)
        headers = {"Authorization": "Bearer " + token}

        async with self.http_session.post(
            url,
            json={"groupIds": group_ids},
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=settings.timeout),
        ) as response:
            await http_raise_for_status(response)
            body = await _read_json(response)

        if not isinstance(body, dict):
            raise aiohttp.ClientPayloadError("Directory response is not a JSON object")
        if not isinstance(body.get("value"), list):
            raise aiohttp.ClientPayloadError("Directory response has no 'value' list")
        return body

    def _service_token_endpoint(
        self, settings: AuthorizationSettings, tenant_id: Optional[str]
    ) -> str:
        tenant = tenant_id or settings.org_domain_hint or "organizations"
        return settings.directory_token_endpoint.format(tenant_id=tenant)

    async def _get_service_token(
        self, settings: AuthorizationSettings, tenant_id: Optional[str]
    ) -> str:
        """Obtains a directory bearer token through the client credentials grant."""
        token_endpoint = self._service_token_endpoint(settings, tenant_id)
        cached = self._service_tokens.get(token_endpoint)
        if cached is not None and cached[1] > time.monotonic():
            return cached[0]

        query_params = {
            "grant_type": "client_credentials",
            "client_id": settings.client_id,
            "client_secret": settings.client_secret,
            "scope": settings.directory_scope,
        }

        async with self.http_session.post(
            token_endpoint,
            data=query_params,
            timeout=aiohttp.ClientTimeout(total=settings.timeout),
        ) as response:
            await http_raise_for_status(response)
            body = await _read_json(response)

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise aiohttp.ClientPayloadError("Directory token response has no access_token")

        try:
            expires_in = int(body.get("expires_in", 3600))
        except (TypeError, ValueError) as e:
            raise aiohttp.ClientPayloadError(
                "Directory token response has no valid expires_in"
            ) from e
        self._service_tokens[token_endpoint] = (
            access_token,
            time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0),
        )
        return access_token

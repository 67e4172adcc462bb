"""OpenID Connect discovery client"""

import logging
import urllib.parse

import aiohttp

from ..errors import DiscoveryInvalid, HTTPClientError, http_raise_for_status
from .validation import validate_url

_LOGGER = logging.getLogger(__name__)


class DiscoveryClient:
    """Fetches and validates an OpenID Connect discovery document."""

    def __init__(
        self,
        discovery_url: str,
        http_session: aiohttp.ClientSession,
        timeout: float = 10,
    ):
        self.discovery_url = discovery_url
        self.http_session = http_session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _fetch_discovery_document(self) -> dict:
        """Fetches discovery document from the given URL."""
        try:
            async with self.http_session.get(
                self.discovery_url, timeout=self.timeout
            ) as response:
                await http_raise_for_status(response)
                return await response.json()
        except HTTPClientError as e:
            if e.status == 404:
                _LOGGER.warning(
                    "Error: Discovery document not found at %s", self.discovery_url
                )
            else:
                _LOGGER.warning("Error fetching discovery: %s", e)
            raise DiscoveryInvalid(type="fetch_error") from e
        except (aiohttp.ClientError, TimeoutError) as e:
            _LOGGER.warning("Discovery URL %s unreachable: %r", self.discovery_url, e)
            raise DiscoveryInvalid(type="unreachable") from e
        except ValueError as e:
            raise DiscoveryInvalid(type="not_json") from e

    def _validate_discovery_document(self, document) -> None:
        """Validates the discovery document."""
        if not isinstance(document, dict):
            raise DiscoveryInvalid(type="not_an_object")

        for endpoint in ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri"):
            if endpoint not in document:
                _LOGGER.warning(
                    "Error: Discovery document %s is missing required endpoint: %s",
                    self.discovery_url,
                    endpoint,
                )
                raise DiscoveryInvalid(
                    type="missing_endpoint", details={"endpoint": endpoint}
                )
            if validate_url(document[endpoint]) is False:
                _LOGGER.warning(
                    "Error: Discovery document %s has invalid URL in endpoint: %s (%s)",
                    self.discovery_url,
                    endpoint,
                    document[endpoint],
                )
                raise DiscoveryInvalid(
                    type="invalid_endpoint",
                    details={"endpoint": endpoint, "url": document[endpoint]},
                )

        # Issuer must live on the same host as the discovery document
        def normalize_issuer(issuer_url: str) -> str:
            parsed = urllib.parse.urlparse(issuer_url.rstrip("/"))
            return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"

        expected_issuer = normalize_issuer(self.discovery_url)
        actual_issuer = normalize_issuer(document["issuer"])
        if expected_issuer != actual_issuer:
            _LOGGER.warning(
                "Error: Discovery issuer mismatch. Expected (normalized): %s, got: %s",
                expected_issuer,
                actual_issuer,
            )
            raise DiscoveryInvalid(
                type="issuer_mismatch",
                details={"expected": expected_issuer, "actual": actual_issuer},
            )

        requirements = (
            ("response_modes_supported", "query", "does_not_support_response_mode"),
            (
                "grant_types_supported",
                "authorization_code",
                "does_not_support_grant_type",
            ),
            ("response_types_supported", "code", "does_not_support_response_type"),
        )
        for field, required, error_type in requirements:
            if field in document and required not in document[field]:
                _LOGGER.warning(
                    "Error: Discovery document %s does not support required "
                    "'%s' in %s, only supports: %s",
                    self.discovery_url,
                    required,
                    field,
                    document[field],
                )
                raise DiscoveryInvalid(
                    type=error_type,
                    details={"required": required, "supported": document[field]},
                )

    async def fetch_discovery_document(self) -> dict:
        """Fetches discovery document."""
        document = await self._fetch_discovery_document()
        self._validate_discovery_document(document)
        return document

"""Validation and sanitization helpers for settings and redirect targets."""

from __future__ import annotations

from urllib.parse import urlparse


def validate_url(url: str) -> bool:
    """Validate that a URL is properly formatted."""
    try:
        parsed = urlparse(url.strip())
        return bool(parsed.scheme in ("http", "https") and parsed.netloc)
    except (ValueError, TypeError, AttributeError):
        return False


def sanitize_client_secret(secret: str) -> str:
    """Sanitize client secret input."""
    return secret.strip() if secret else ""


def validate_client_id(client_id: str) -> bool:
    """Validate client ID format."""
    return bool(client_id and client_id.strip())


def is_safe_redirect(target: str, allowed_host: str | None) -> bool:
    """Check that a post-login redirect stays on this site.

    Relative paths are accepted as long as they cannot be read as a
    scheme-relative URL. Absolute URLs must point at ``allowed_host``.
    """
    if not isinstance(target, str) or not target:
        return False
    if any(char in target for char in ("\\", "\r", "\n", "\t")):
        return False

    try:
        parsed = urlparse(target)
    except ValueError:
        return False

    if not parsed.scheme and not parsed.netloc:
        return target.startswith("/") and not target.startswith("//")

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    return allowed_host is not None and parsed.netloc.lower() == allowed_host.lower()

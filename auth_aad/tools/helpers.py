"""Helper functions for the protocol tools."""

import base64
import hmac
import os
import re

_BASE64URL = re.compile(r"[A-Za-z0-9_-]*")


def base64url_encode(value: bytes) -> str:
    """Uses base64url encoding on a given byte string"""
    return base64.urlsafe_b64encode(value).rstrip(b"=").decode("utf-8")


def base64url_decode(value: str) -> bytes:
    """Decodes an unpadded base64url string, raising ValueError when invalid."""
    if not isinstance(value, str) or not _BASE64URL.fullmatch(value):
        raise ValueError("invalid base64url data")
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError("invalid base64url data") from e


def generate_random_url_string(length: int = 32) -> str:
    """Generates a random URL safe string (base64_url encoded)"""
    return base64url_encode(os.urandom(length))


def constant_time_equals(expected: str | None, actual: str | None) -> bool:
    """Compares two secrets without leaking timing, None never matches."""
    if not expected or not actual:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))

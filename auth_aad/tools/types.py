"""Generic data types"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class TokenResponse:
    """Result of exchanging an authorization code at the token endpoint."""

    access_token: Optional[str] = None
    id_token: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "TokenResponse":
        """Builds a response from the token endpoint JSON body."""
        if data.get("error"):
            return cls(
                error=str(data["error"]),
                error_description=data.get("error_description"),
            )

        access_token = data.get("access_token")
        id_token = data.get("id_token")
        if not access_token or not id_token:
            return cls(
                error="invalid_token_response",
                error_description="Token response contained neither tokens nor an error.",
            )
        return cls(access_token=access_token, id_token=id_token)

    @property
    def is_error(self) -> bool:
        """Whether the exchange was answered with an error."""
        return self.error is not None


def _optional_str(claims: dict, name: str) -> Optional[str]:
    value = claims.get(name)
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class IdentityClaims:
    """Validated contents of an ID token."""

    subject: str
    issuer: str
    audience: tuple[str, ...]
    expires_at: int
    tenant_id: Optional[str] = None
    not_before: Optional[int] = None
    issued_at: Optional[int] = None
    upn: Optional[str] = None
    unique_name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    object_id: Optional[str] = None
    nonce: Optional[str] = None

    @classmethod
    def from_dict(cls, claims: dict) -> "IdentityClaims":
        """Builds typed claims from a decoded and validated payload."""
        audience = claims.get("aud", ())
        if isinstance(audience, str):
            audience = (audience,)

        return cls(
            subject=str(claims.get("sub", "")),
            issuer=str(claims.get("iss", "")),
            audience=tuple(audience),
            expires_at=int(claims.get("exp", 0)),
            tenant_id=_optional_str(claims, "tid"),
            not_before=claims.get("nbf"),
            issued_at=claims.get("iat"),
            upn=_optional_str(claims, "upn"),
            unique_name=_optional_str(claims, "unique_name"),
            given_name=_optional_str(claims, "given_name"),
            family_name=_optional_str(claims, "family_name"),
            object_id=_optional_str(claims, "oid"),
            nonce=_optional_str(claims, "nonce"),
        )

    @property
    def login_claim(self) -> Optional[str]:
        """The claim identifying the user, 'upn' with 'unique_name' as fallback."""
        return self.upn or self.unique_name


@dataclass
class LocalUser:
    """A user account of the host application."""

    id: Any
    login: str
    email: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    roles: set[str] = field(default_factory=set)

    @property
    def display_name(self) -> str:
        """Full name when known, otherwise the login."""
        name = " ".join(part for part in (self.given_name, self.family_name) if part)
        return name or self.login


@dataclass(frozen=True)
class GroupMembershipResult:
    """The candidate groups the subject is a member of, in candidate order."""

    subject_id: str
    group_ids: tuple[str, ...] = ()

    def __contains__(self, group_id: str) -> bool:
        return group_id in self.group_ids

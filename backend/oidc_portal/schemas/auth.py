"""Authentication response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from oidc_portal.services.identity.base import IdentityClaims


class IdentityResponse(BaseModel):
    """Normalized identity returned after a successful sign-in."""

    provider: str
    subject: str
    name: str
    email: str
    picture: Optional[str] = None
    raw_claims: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: IdentityClaims) -> "IdentityResponse":
        return cls(
            provider=claims.provider,
            subject=claims.subject,
            name=claims.name,
            email=claims.email,
            picture=claims.picture,
            raw_claims=claims.raw_claims,
        )


class AuthErrorResponse(BaseModel):
    """Error body for a failed sign-in step."""

    error: str
    detail: str
    provider: Optional[str] = None
    oauth_error: Optional[str] = None
    oauth_error_description: Optional[str] = None

"""Normalization of provider-specific claim sets into IdentityClaims.

Providers disagree on claim names: Microsoft Graph style payloads use
``displayName``/``mail``/``userPrincipalName``/``oid`` where standard OIDC
uses ``name``/``email``/``sub``. Each target field is filled from the first
source in :data:`CLAIM_SOURCES` that is present and non-empty.
"""

from collections.abc import Mapping
from typing import Any, Optional

from oidc_portal.services.identity.base import IdentityClaims
from oidc_portal.services.identity.exceptions import ClaimsNormalizationFailure

# (source path, target field), in priority order per target.
# Dotted paths descend into nested objects.
CLAIM_SOURCES: tuple[tuple[str, str], ...] = (
    ("sub", "subject"),
    ("id", "subject"),
    ("oid", "subject"),
    ("name", "name"),
    ("given_name", "name"),
    ("displayName", "name"),
    ("email", "email"),
    ("mail", "email"),
    ("userPrincipalName", "email"),
    ("picture", "picture"),
    ("photo.url", "picture"),
)

# Used when no source is present; picture has no default
CLAIM_DEFAULTS: dict[str, str] = {
    "subject": "Unknown ID",
    "name": "User",
    "email": "No email provided",
}


def _lookup(claims: Mapping[str, Any], path: str) -> Optional[Any]:
    value: Any = claims
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def _as_text(value: Any, source: str, provider: str) -> str:
    if isinstance(value, str):
        return value
    # bool is an int subclass but never a sensible identity value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ClaimsNormalizationFailure(
        provider,
        f"Claim {source!r} has unexpected type {type(value).__name__}",
    )


def normalize_claims(provider: str, claims: Any) -> IdentityClaims:
    """Map a raw claim set onto :class:`IdentityClaims`.

    Missing optional claims never raise; they fall back to the defaults in
    :data:`CLAIM_DEFAULTS` (or ``None`` for ``picture``).

    Raises:
        ClaimsNormalizationFailure: if ``claims`` is not a mapping, or the
            winning value for a field is not a scalar.
    """
    if not isinstance(claims, Mapping):
        raise ClaimsNormalizationFailure(
            provider,
            f"Expected a claim object, got {type(claims).__name__}",
        )

    resolved: dict[str, Optional[str]] = {}
    for source, target in CLAIM_SOURCES:
        if target in resolved:
            continue
        value = _lookup(claims, source)
        if _is_present(value):
            resolved[target] = _as_text(value, source, provider)

    return IdentityClaims(
        provider=provider,
        subject=resolved.get("subject") or CLAIM_DEFAULTS["subject"],
        name=resolved.get("name") or CLAIM_DEFAULTS["name"],
        email=resolved.get("email") or CLAIM_DEFAULTS["email"],
        picture=resolved.get("picture"),
        raw_claims=dict(claims),
    )

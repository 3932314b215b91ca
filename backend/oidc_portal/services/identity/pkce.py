"""PKCE (RFC 7636) and anti-CSRF state generation."""

import base64
import hashlib
import secrets

# 32 random bytes -> 43 URL-safe characters, 256 bits of entropy
_TOKEN_BYTES = 32


def generate_code_verifier() -> str:
    """Return a fresh high-entropy code_verifier (43 chars, unreserved alphabet)."""
    return secrets.token_urlsafe(_TOKEN_BYTES)


def code_challenge(code_verifier: str) -> str:
    """Derive the S256 code_challenge: BASE64URL(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE ``(code_verifier, code_challenge)`` pair."""
    code_verifier = generate_code_verifier()
    return code_verifier, code_challenge(code_verifier)


def generate_state() -> str:
    """Return an unguessable state value, independent of the verifier."""
    return secrets.token_urlsafe(_TOKEN_BYTES)

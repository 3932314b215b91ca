"""Pytest configuration and shared fixtures."""

import time

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt as jose_jwt

from helpers import TEST_KID, make_client, make_provider_config, make_registry
from oidc_portal.core.session import SESSION_ID_KEY, MemorySessionBackend, SessionStore
from oidc_portal.services.identity.oidc import OIDCProviderClient
from oidc_portal.services.identity.registry import ProviderRegistry


SESSION_ID = "test-session-id"


@pytest.fixture
def session_data() -> dict:
    """Server-side record of the test session."""
    return {}


@pytest.fixture
def session_cookie() -> dict:
    """Signed-cookie contents of the test session."""
    return {SESSION_ID_KEY: SESSION_ID}


@pytest.fixture
def session_backend(session_data) -> MemorySessionBackend:
    return MemorySessionBackend({SESSION_ID: session_data})


@pytest.fixture
def session(session_backend, session_cookie) -> SessionStore:
    return SessionStore(session_backend, session_cookie)


@pytest.fixture
def microsoft_client() -> OIDCProviderClient:
    return make_client("microsoft")


@pytest_asyncio.fixture
async def registry(microsoft_client) -> ProviderRegistry:
    """Registry with microsoft available and google configured but unavailable."""
    configs = [make_provider_config("microsoft"), make_provider_config("google")]
    return await make_registry(configs, {"microsoft": microsoft_client})


# ---------------------------------------------------------------------------
# Signing keys for ID token tests
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_pem() -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def jwks(rsa_private_pem) -> dict:
    """Public JWKS matching ``rsa_private_pem``."""
    private_key = serialization.load_pem_private_key(rsa_private_pem, password=None)
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = TEST_KID
    public_jwk["use"] = "sig"
    return {"keys": [public_jwk]}


@pytest.fixture
def sign_id_token(rsa_private_pem):
    """Return a function that signs claims as an RS256 ID token."""

    def _sign(claims: dict, **headers) -> str:
        payload = {
            "iat": int(time.time()),
            "exp": int(time.time()) + 3600,
        }
        payload.update(claims)
        return jose_jwt.encode(
            payload,
            rsa_private_pem.decode("ascii"),
            algorithm=headers.pop("algorithm", "RS256"),
            headers={"kid": TEST_KID, **headers},
        )

    return _sign

"""Builders for identity-flow test objects."""

from typing import Optional
from unittest.mock import AsyncMock, Mock, patch

from oidc_portal.services.identity.base import ProviderConfig
from oidc_portal.services.identity.oidc import OIDCProviderClient, ProviderMetadata
from oidc_portal.services.identity.registry import ProviderRegistry

REDIRECT_URI = "http://localhost:3000/auth/callback"
TEST_KID = "test-key-1"


def make_provider_config(provider_id: str = "microsoft", **kwargs) -> ProviderConfig:
    defaults = dict(
        id=provider_id,
        client_id=f"{provider_id}-client-id",
        client_secret=f"{provider_id}-client-secret",
        issuer_url=f"https://{provider_id}.idp.test",
        scope="openid profile email",
        redirect_uri=REDIRECT_URI,
        required=False,
    )
    defaults.update(kwargs)
    return ProviderConfig(**defaults)


def make_metadata(issuer: str = "https://microsoft.idp.test", **kwargs) -> ProviderMetadata:
    defaults = dict(
        issuer=issuer,
        authorization_endpoint=f"{issuer}/oauth2/authorize",
        token_endpoint=f"{issuer}/oauth2/token",
        jwks_uri=f"{issuer}/keys",
    )
    defaults.update(kwargs)
    return ProviderMetadata(**defaults)


def make_client(
    provider_id: str = "microsoft",
    jwks: Optional[dict] = None,
    http_client=None,
    config: Optional[ProviderConfig] = None,
    metadata: Optional[ProviderMetadata] = None,
) -> OIDCProviderClient:
    config = config or make_provider_config(provider_id)
    return OIDCProviderClient(
        config,
        metadata or make_metadata(config.issuer_url),
        jwks if jwks is not None else {"keys": []},
        http_client if http_client is not None else Mock(),
    )


async def make_registry(configs, clients: dict) -> ProviderRegistry:
    """Initialize a registry whose discovery returns the given clients by provider id."""

    async def fake_discover(config, http_client, clock_skew_seconds=0):
        if config.id not in clients:
            raise RuntimeError(f"{config.id} discovery failed")
        return clients[config.id]

    registry = ProviderRegistry(configs, http_client=Mock())
    with patch.object(OIDCProviderClient, "discover", new=AsyncMock(side_effect=fake_discover)):
        await registry.initialize()
    return registry

"""ProviderRegistry: one discovered OIDC client per configured provider."""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Optional

import httpx

from oidc_portal.services.identity.base import ProviderConfig
from oidc_portal.services.identity.exceptions import ProviderInitializationError
from oidc_portal.services.identity.oidc import OIDCProviderClient

if TYPE_CHECKING:
    from oidc_portal.config import Settings

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Owns the OIDC clients for every configured provider.

    ``initialize()`` runs once at startup and discovers each provider in turn.
    A provider marked ``required`` that cannot be set up aborts startup; any
    other provider that fails is logged and left unavailable, and the rest
    carry on. After initialization the clients are read-only and shared by
    all requests.

    The set of *supported* providers is every configured id, whether or not
    it came up; *available* providers are those with a live client.
    """

    def __init__(
        self,
        configs: Iterable[ProviderConfig],
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        clock_skew_seconds: int = 0,
    ) -> None:
        self._configs: dict[str, ProviderConfig] = {c.id: c for c in configs}
        self._clients: dict[str, OIDCProviderClient] = {}
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._clock_skew = clock_skew_seconds
        self.initialized = False

    @property
    def supported_providers(self) -> frozenset[str]:
        return frozenset(self._configs)

    @property
    def default_provider(self) -> Optional[str]:
        """First configured provider, used by the bare /auth entry point."""
        return next(iter(self._configs), None)

    def available_providers(self) -> list[str]:
        return [pid for pid in self._configs if pid in self._clients]

    async def initialize(self) -> "ProviderRegistry":
        """Discover every configured provider.

        Raises:
            ProviderInitializationError: a required provider is missing
                credentials or failed discovery.
        """
        clients: dict[str, OIDCProviderClient] = {}

        for config in self._configs.values():
            if not config.has_credentials:
                if config.required:
                    raise ProviderInitializationError(config.id, "client credentials not provided")
                logger.warning("%s credentials not provided, skipping setup", config.id)
                continue

            try:
                client = await OIDCProviderClient.discover(
                    config, self._http, clock_skew_seconds=self._clock_skew
                )
            except Exception as exc:
                if config.required:
                    logger.error("%s OIDC setup failed: %s", config.id, exc)
                    raise ProviderInitializationError(config.id, str(exc)) from exc
                logger.warning("%s OIDC setup failed, provider unavailable: %s", config.id, exc)
                continue

            clients[config.id] = client
            logger.info("%s OIDC client configured (issuer=%s)", config.id, client.metadata.issuer)

        # Swap in one step so readers never see a half-built registry
        self._clients = clients
        self.initialized = True
        logger.info(
            "Authentication services initialized: %s available of %s configured",
            len(clients),
            len(self._configs),
        )
        return self

    def is_available(self, provider_id: str) -> bool:
        return provider_id in self._clients

    def get_client(self, provider_id: str) -> Optional[OIDCProviderClient]:
        """Return the provider's client, or None when unknown or not initialized."""
        return self._clients.get(provider_id)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()


def build_registry(settings: "Settings", http_client: Optional[httpx.AsyncClient] = None) -> ProviderRegistry:
    """Construct an (uninitialized) registry from application settings."""
    configs = settings.provider_configs()
    for config in configs:
        logger.info(
            "Auth provider %s registered (%s)",
            config.id,
            "required" if config.required else "optional",
        )
    return ProviderRegistry(
        configs,
        http_client=http_client,
        timeout=settings.OIDC_HTTP_TIMEOUT_SECONDS,
        clock_skew_seconds=settings.OIDC_CLOCK_SKEW_SECONDS,
    )

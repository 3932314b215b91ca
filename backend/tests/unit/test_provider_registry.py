"""Unit tests for the provider registry."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from helpers import make_client, make_provider_config, make_registry
from oidc_portal.config import Settings
from oidc_portal.services.identity.exceptions import ProviderInitializationError
from oidc_portal.services.identity.oidc import OIDCProviderClient
from oidc_portal.services.identity.registry import ProviderRegistry, build_registry


@pytest.mark.unit
class TestProviderRegistryInitialize:
    """Tests for startup discovery and failure isolation."""

    @pytest.mark.asyncio
    async def test_all_providers_available(self):
        configs = [make_provider_config("microsoft"), make_provider_config("google")]
        clients = {"microsoft": make_client("microsoft"), "google": make_client("google")}

        registry = await make_registry(configs, clients)

        assert registry.initialized is True
        assert registry.is_available("microsoft")
        assert registry.is_available("google")
        assert registry.get_client("google") is clients["google"]
        assert registry.available_providers() == ["microsoft", "google"]

    @pytest.mark.asyncio
    async def test_optional_provider_failure_is_isolated(self):
        configs = [
            make_provider_config("microsoft", required=True),
            make_provider_config("google"),
        ]
        registry = await make_registry(configs, {"microsoft": make_client("microsoft")})

        assert registry.is_available("microsoft")
        assert not registry.is_available("google")
        assert registry.get_client("google") is None
        assert registry.supported_providers == frozenset({"microsoft", "google"})

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_providers(self):
        configs = [make_provider_config("google"), make_provider_config("microsoft")]
        registry = await make_registry(configs, {"microsoft": make_client("microsoft")})

        assert registry.is_available("microsoft")

    @pytest.mark.asyncio
    async def test_required_provider_failure_aborts(self):
        configs = [
            make_provider_config("google"),
            make_provider_config("microsoft", required=True),
        ]

        with pytest.raises(ProviderInitializationError) as exc_info:
            await make_registry(configs, {"google": make_client("google")})

        assert exc_info.value.provider == "microsoft"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_required_provider_without_credentials_aborts(self):
        configs = [make_provider_config("microsoft", client_secret="", required=True)]
        discover = AsyncMock()
        registry = ProviderRegistry(configs, http_client=Mock())

        with patch.object(OIDCProviderClient, "discover", new=discover):
            with pytest.raises(ProviderInitializationError, match="credentials"):
                await registry.initialize()

        discover.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_optional_provider_without_credentials_is_skipped(self):
        configs = [make_provider_config("google", client_id="")]
        discover = AsyncMock()
        registry = ProviderRegistry(configs, http_client=Mock())

        with patch.object(OIDCProviderClient, "discover", new=discover):
            await registry.initialize()

        discover.assert_not_awaited()
        assert not registry.is_available("google")
        assert "google" in registry.supported_providers

    @pytest.mark.asyncio
    async def test_network_error_marks_optional_provider_unavailable(self):
        configs = [make_provider_config("google")]
        registry = ProviderRegistry(configs, http_client=Mock())
        discover = AsyncMock(side_effect=httpx.ConnectTimeout("timed out"))

        with patch.object(OIDCProviderClient, "discover", new=discover):
            await registry.initialize()

        assert registry.available_providers() == []


@pytest.mark.unit
class TestProviderRegistryLookup:
    """Tests for lookups before and after initialization."""

    def test_uninitialized_registry_has_no_clients(self):
        registry = ProviderRegistry([make_provider_config("microsoft")], http_client=Mock())

        assert registry.initialized is False
        assert registry.get_client("microsoft") is None
        assert not registry.is_available("microsoft")

    @pytest.mark.asyncio
    async def test_unknown_provider_returns_none(self, registry):
        assert registry.get_client("github") is None
        assert registry.is_available("github") is False

    def test_default_provider_is_first_configured(self):
        registry = ProviderRegistry(
            [make_provider_config("google"), make_provider_config("microsoft")],
            http_client=Mock(),
        )
        assert registry.default_provider == "google"
        assert ProviderRegistry([], http_client=Mock()).default_provider is None

    @pytest.mark.asyncio
    async def test_aclose_only_closes_owned_client(self):
        shared = Mock()
        shared.aclose = AsyncMock()
        await ProviderRegistry([], http_client=shared).aclose()
        shared.aclose.assert_not_awaited()

        owned = ProviderRegistry([])
        await owned.aclose()


@pytest.mark.unit
class TestBuildRegistry:
    """Tests for building the registry from settings."""

    def test_builds_configs_from_settings(self):
        settings = Settings(
            MICROSOFT_CLIENT_ID="ms-id",
            MICROSOFT_CLIENT_SECRET="ms-secret",
            GOOGLE_CLIENT_ID="g-id",
            GOOGLE_CLIENT_SECRET="g-secret",
        )
        registry = build_registry(settings, http_client=Mock())

        assert registry.supported_providers == frozenset({"microsoft", "google"})
        assert registry.default_provider == "microsoft"

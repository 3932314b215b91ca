"""Application configuration using Pydantic settings."""

import logging
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from oidc_portal.services.identity.base import ProviderConfig

logger = logging.getLogger(__name__)

# Path the identity providers redirect back to after sign-in
CALLBACK_PATH = "/auth/callback"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "OIDC Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Public URL of this application; the redirect URI is derived from it
    BASE_URL: str = "http://localhost:3000"

    # Session cookie (signed; holds only the opaque session id)
    SESSION_SECRET: str = "dev-session-secret-change-in-production"
    SESSION_COOKIE_NAME: str = "oidc_portal_session"
    SESSION_MAX_AGE_SECONDS: int = 24 * 60 * 60

    # Server-side session storage for the in-flight PKCE/state record
    SESSION_BACKEND: str = "redis"  # redis, memory (single process only)
    REDIS_URL: str = "redis://localhost:6379/0"
    # How long an unfinished sign-in stays redeemable
    FLOW_STATE_TTL_SECONDS: int = 600

    # Identity providers
    # Comma-separated, e.g. AUTH_PROVIDERS=microsoft,google
    AUTH_PROVIDERS: Annotated[list[str], NoDecode] = ["microsoft", "google"]
    # Providers whose discovery failure must abort startup
    REQUIRED_PROVIDERS: Annotated[list[str], NoDecode] = ["microsoft"]

    # Microsoft identity platform (multi-tenant "common" endpoint by default)
    MICROSOFT_CLIENT_ID: str = ""
    MICROSOFT_CLIENT_SECRET: str = ""
    MICROSOFT_ISSUER_URL: str = "https://login.microsoftonline.com/common/v2.0"
    MICROSOFT_SCOPE: str = "openid profile email"

    # Google
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_ISSUER_URL: str = "https://accounts.google.com"
    GOOGLE_SCOPE: str = "openid profile email"

    # Outbound calls to discovery, JWKS and token endpoints
    OIDC_HTTP_TIMEOUT_SECONDS: float = 10.0
    # Allowed clock drift when checking ID token exp/iat/nbf
    OIDC_CLOCK_SKEW_SECONDS: int = 60

    # Monitoring
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # 'text' or 'json' (json for production)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator("AUTH_PROVIDERS", "REQUIRED_PROVIDERS", mode="before")
    @classmethod
    def split_provider_list(cls, v):
        """Accept comma-separated provider lists from the environment."""
        if isinstance(v, str):
            v = v.split(",")
        return [name.strip().lower() for name in v if name and name.strip()]

    @field_validator("SESSION_BACKEND")
    @classmethod
    def validate_session_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("redis", "memory"):
            raise ValueError("SESSION_BACKEND must be 'redis' or 'memory'")
        return v

    @field_validator("SESSION_SECRET")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Validate SESSION_SECRET is not using insecure defaults in production."""
        insecure_defaults = [
            "dev-session-secret-change-in-production",
            "your_secret",
            "change-me",
            "secret",
        ]

        # Get ENVIRONMENT from environment variable directly (before Settings is fully initialized)
        import os

        environment = os.getenv("ENVIRONMENT", "development")

        if environment == "production" and (v in insecure_defaults or len(v) < 32):
            raise ValueError(
                "Insecure SESSION_SECRET detected in production! "
                "Generate a secure key with: openssl rand -hex 32"
            )

        return v

    @property
    def redirect_uri(self) -> str:
        """Absolute callback URL registered with every identity provider."""
        return f"{self.BASE_URL.rstrip('/')}{CALLBACK_PATH}"

    def provider_configs(self) -> list[ProviderConfig]:
        """Build one ProviderConfig per entry of AUTH_PROVIDERS.

        Provider settings are looked up by naming convention
        (``<ID>_CLIENT_ID``, ``<ID>_CLIENT_SECRET``, ``<ID>_ISSUER_URL``,
        ``<ID>_SCOPE``). Entries without an ``<ID>_ISSUER_URL`` setting are
        skipped with a warning.
        """
        required = set(self.REQUIRED_PROVIDERS)
        configs: list[ProviderConfig] = []

        for provider_id in self.AUTH_PROVIDERS:
            prefix = provider_id.upper()
            issuer_url = getattr(self, f"{prefix}_ISSUER_URL", None)
            if not issuer_url:
                logger.warning(
                    "Provider %r listed in AUTH_PROVIDERS but %s_ISSUER_URL is not defined; skipping",
                    provider_id,
                    prefix,
                )
                continue

            configs.append(
                ProviderConfig(
                    id=provider_id,
                    client_id=getattr(self, f"{prefix}_CLIENT_ID", ""),
                    client_secret=getattr(self, f"{prefix}_CLIENT_SECRET", ""),
                    issuer_url=issuer_url,
                    scope=getattr(self, f"{prefix}_SCOPE", "openid profile email"),
                    redirect_uri=self.redirect_uri,
                    required=provider_id in required,
                )
            )

        return configs


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

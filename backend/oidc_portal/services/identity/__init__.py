"""Identity provider package: OIDC sign-in flow engine."""

from oidc_portal.services.identity.base import FlowState, IdentityClaims, ProviderConfig
from oidc_portal.services.identity.claims import normalize_claims
from oidc_portal.services.identity.exceptions import (
    AuthFlowError,
    ClaimsNormalizationFailure,
    InitiationFailure,
    InvalidProvider,
    MissingState,
    NoSessionFlow,
    OAuthProviderError,
    ProviderInitializationError,
    ProviderUnavailable,
    StateMismatch,
    TokenExchangeFailure,
)
from oidc_portal.services.identity.flow import CallbackHandler, FlowInitiator
from oidc_portal.services.identity.oidc import OIDCProviderClient, ProviderMetadata
from oidc_portal.services.identity.registry import ProviderRegistry, build_registry

__all__ = [
    "AuthFlowError",
    "CallbackHandler",
    "ClaimsNormalizationFailure",
    "FlowInitiator",
    "FlowState",
    "IdentityClaims",
    "InitiationFailure",
    "InvalidProvider",
    "MissingState",
    "NoSessionFlow",
    "OAuthProviderError",
    "OIDCProviderClient",
    "ProviderConfig",
    "ProviderInitializationError",
    "ProviderMetadata",
    "ProviderRegistry",
    "ProviderUnavailable",
    "StateMismatch",
    "TokenExchangeFailure",
    "build_registry",
    "normalize_claims",
]

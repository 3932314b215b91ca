"""Errors raised by the sign-in flow.

Every request-time failure is an :class:`AuthFlowError`. Each subclass carries
a machine-readable ``error_code``, an HTTP status hint for the presentation
layer and a message that is safe to show to the end user. Upstream details
(response bodies, stack traces) are logged, never put in the message.

Subclass hierarchy::

    AuthFlowError
    +-- InvalidProvider             (400)
    +-- ProviderUnavailable         (503)
    +-- OAuthProviderError          (400)
    +-- NoSessionFlow               (400)
    +-- MissingState                (400)
    +-- StateMismatch               (400)
    +-- TokenExchangeFailure        (502)
    +-- ClaimsNormalizationFailure  (502)
    +-- InitiationFailure           (500)

:class:`ProviderInitializationError` is raised at startup only.
"""

from typing import Any, Optional


class AuthFlowError(Exception):
    """Base class for terminal sign-in failures."""

    status_code: int = 400
    error_code: str = "auth_flow_error"
    default_message: str = "Authentication failed"

    def __init__(self, provider: Optional[str] = None, message: Optional[str] = None) -> None:
        self.provider = provider
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict[str, Any]:
        """Payload for the presentation layer."""
        return {
            "error": self.error_code,
            "detail": self.message,
            "provider": self.provider,
        }


class InvalidProvider(AuthFlowError):
    """Raised when the requested provider id is not one of the configured providers."""

    error_code = "invalid_provider"

    def __init__(self, provider: str) -> None:
        super().__init__(provider, f"Invalid provider: {provider!r}")


class ProviderUnavailable(AuthFlowError):
    """Raised when a configured provider has no usable client."""

    status_code = 503
    error_code = "provider_unavailable"

    def __init__(self, provider: str) -> None:
        super().__init__(provider, f"{provider} authentication not available")


class OAuthProviderError(AuthFlowError):
    """Raised when the identity provider redirects back with an ``error`` parameter."""

    error_code = "oauth_error"

    def __init__(
        self,
        error: str,
        description: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> None:
        self.error = error
        self.description = description
        super().__init__(provider, f"{error}: {description or 'Authentication failed'}")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["oauth_error"] = self.error
        payload["oauth_error_description"] = self.description
        return payload


class NoSessionFlow(AuthFlowError):
    """Raised when a callback arrives for a session with no sign-in in progress."""

    error_code = "no_session_flow"
    default_message = "No provider found in session"


class MissingState(AuthFlowError):
    """Raised when the callback carries no ``state`` parameter."""

    error_code = "missing_state"
    default_message = "Missing state parameter"


class StateMismatch(AuthFlowError):
    """Raised when the callback ``state`` does not match the session."""

    error_code = "state_mismatch"
    default_message = "Invalid state parameter"


class TokenExchangeFailure(AuthFlowError):
    """Raised when the code exchange or ID token validation fails."""

    status_code = 502
    error_code = "token_exchange_failed"
    default_message = "Failed to complete authentication"


class ClaimsNormalizationFailure(AuthFlowError):
    """Raised when the provider's claim set has an unexpected shape."""

    status_code = 502
    error_code = "claims_normalization_failed"
    default_message = "Received an unreadable identity from the provider"


class InitiationFailure(AuthFlowError):
    """Raised for unexpected errors while preparing the authorization redirect."""

    status_code = 500
    error_code = "initiation_failed"
    default_message = "Failed to start authentication"


class OIDCProtocolError(Exception):
    """Internal: a provider endpoint returned something we cannot use.

    Messages may contain upstream detail and are for server logs only.
    """


class ProviderInitializationError(Exception):
    """Raised at startup when a required provider cannot be set up."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"Required provider {provider!r} failed to initialize: {reason}")

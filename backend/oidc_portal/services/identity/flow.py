"""Authorization Code + PKCE sign-in flow: initiation and callback handling."""

import hmac
import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from oidc_portal.core.session import SessionStore
from oidc_portal.services.identity.base import FlowState, IdentityClaims
from oidc_portal.services.identity.claims import normalize_claims
from oidc_portal.services.identity.exceptions import (
    InitiationFailure,
    InvalidProvider,
    MissingState,
    NoSessionFlow,
    OAuthProviderError,
    ProviderUnavailable,
    StateMismatch,
    TokenExchangeFailure,
)
from oidc_portal.services.identity.pkce import generate_pkce_pair, generate_state
from oidc_portal.services.identity.registry import ProviderRegistry
from oidc_portal.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)


class FlowInitiator:
    """Starts a sign-in: stores a fresh FlowState and returns the IdP redirect URL.

    A session holds at most one flow; starting a new one replaces whatever
    was in progress (e.g. in another tab).
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        supported_providers: Optional[Iterable[str]] = None,
    ) -> None:
        self._registry = registry
        self._supported = frozenset(
            supported_providers if supported_providers is not None else registry.supported_providers
        )

    @property
    def supported_providers(self) -> frozenset[str]:
        return self._supported

    async def initiate(self, provider_id: str, session: SessionStore) -> str:
        """Return the authorization URL for ``provider_id``.

        The FlowState is written only once the URL has been built, so a
        failed initiation leaves any earlier flow in place.

        Raises:
            InvalidProvider: ``provider_id`` is not a configured provider.
            ProviderUnavailable: the provider failed to initialize.
            InitiationFailure: anything unexpected while building the request.
        """
        if provider_id not in self._supported:
            logger.info("Invalid provider requested: %r", provider_id)
            raise InvalidProvider(provider_id)

        if not self._registry.is_available(provider_id):
            logger.info("%s client not available", provider_id)
            raise ProviderUnavailable(provider_id)

        try:
            code_verifier, challenge = generate_pkce_pair()
            state = generate_state()

            client = self._registry.get_client(provider_id)
            if client is None:
                raise RuntimeError(f"{provider_id} client disappeared during initiation")
            url = client.authorization_url(state=state, code_challenge=challenge)

            await FlowState(code_verifier=code_verifier, state=state, provider=provider_id).save(session)
        except Exception as exc:
            logger.exception("%s auth initiation error", provider_id)
            raise InitiationFailure(provider_id) from exc

        logger.info("Redirecting to %s authorization endpoint", provider_id)
        return url


class CallbackHandler:
    """Completes a sign-in from the IdP redirect.

    Checks run in a fixed order and each has its own failure. The session's
    FlowState is removed only when the whole exchange succeeds; every failure
    leaves it as it was.
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self._registry = registry

    async def handle(self, query: Mapping[str, str], session: SessionStore) -> IdentityClaims:
        """Validate the callback, redeem the code and return normalized claims.

        Raises:
            OAuthProviderError: the IdP returned ``error`` (checked before the
                session is read).
            NoSessionFlow: no flow is in progress for this session, or a
                concurrent request finished it first.
            MissingState: the callback has no ``state``.
            StateMismatch: ``state`` differs from the one issued.
            ProviderUnavailable: the flow's provider has no client.
            TokenExchangeFailure: code exchange or ID token validation failed.
            ClaimsNormalizationFailure: the claim set could not be read.
        """
        error = query.get("error")
        if error:
            logger.info("OAuth error returned by provider: %s", error)
            raise OAuthProviderError(error, query.get("error_description") or None)

        flow = await FlowState.load(session)
        if not flow.in_progress:
            logger.info("Callback received with no provider in session")
            raise NoSessionFlow()
        provider = flow.provider

        query_state = query.get("state")
        if not query_state:
            logger.info("Callback for %s missing state parameter", provider)
            raise MissingState(provider)

        if not _states_match(query_state, flow.state):
            logger.warning("State mismatch on %s callback", provider)
            raise StateMismatch(provider)

        client = self._registry.get_client(provider)
        if client is None:
            logger.warning("No client for %s", provider)
            raise ProviderUnavailable(provider)

        code = query.get("code")
        if not code or not flow.code_verifier:
            logger.warning("Callback for %s has no authorization code or verifier", provider)
            raise TokenExchangeFailure(provider)

        logger.info("Processing callback for %s", provider)
        try:
            raw_claims = await client.exchange_code(code, flow.code_verifier)
        except Exception as exc:
            logger.warning("Token exchange failed for %s: %s", provider, exc)
            raise TokenExchangeFailure(provider) from exc

        identity = normalize_claims(provider, raw_claims)

        if not await FlowState.clear(session):
            logger.warning("Flow for %s was already completed by another request", provider)
            raise NoSessionFlow(provider)

        logger.info(
            "Auth successful for %s: email=%s",
            provider,
            redact_email(identity.email),
        )
        return identity


def _states_match(received: str, expected: Optional[str]) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))

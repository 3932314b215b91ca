"""OIDC provider client: discovery, authorization URL, code exchange, ID token validation."""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from jose import JWTError, jwt as jose_jwt

from oidc_portal.services.identity.base import ProviderConfig
from oidc_portal.services.identity.exceptions import OIDCProtocolError

logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"

# Placeholder in Microsoft's multi-tenant issuer, replaced by the token's tid claim
_TENANT_PLACEHOLDER = "{tenantid}"

_REQUIRED_METADATA = ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri")


@dataclass(frozen=True)
class ProviderMetadata:
    """The subset of the discovery document the flow relies on."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    id_token_signing_alg_values_supported: tuple[str, ...] = ("RS256",)
    # OIDC Discovery default when the document omits the field
    token_endpoint_auth_methods_supported: tuple[str, ...] = ("client_secret_basic",)

    @classmethod
    def from_document(cls, doc: Any) -> "ProviderMetadata":
        if not isinstance(doc, dict):
            raise OIDCProtocolError("Discovery document is not a JSON object")
        missing = [key for key in _REQUIRED_METADATA if not doc.get(key)]
        if missing:
            raise OIDCProtocolError(f"Discovery document missing {', '.join(missing)}")

        kwargs: dict[str, Any] = {key: doc[key] for key in _REQUIRED_METADATA}
        for key in ("id_token_signing_alg_values_supported", "token_endpoint_auth_methods_supported"):
            if doc.get(key):
                kwargs[key] = tuple(doc[key])
        return cls(**kwargs)


class OIDCProviderClient:
    """A discovered, ready-to-use client for one identity provider.

    Built once by :meth:`discover` and never modified afterwards, so a single
    instance is shared by all requests. Signing keys are fetched at discovery
    time; picking up a key rotation requires rebuilding the client.
    """

    def __init__(
        self,
        config: ProviderConfig,
        metadata: ProviderMetadata,
        jwks: dict,
        http_client: httpx.AsyncClient,
        clock_skew_seconds: int = 0,
    ) -> None:
        self._config = config
        self._metadata = metadata
        self._jwks = jwks
        self._http = http_client
        self._clock_skew = clock_skew_seconds

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def metadata(self) -> ProviderMetadata:
        return self._metadata

    @property
    def provider_id(self) -> str:
        return self._config.id

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @classmethod
    async def discover(
        cls,
        config: ProviderConfig,
        http_client: httpx.AsyncClient,
        clock_skew_seconds: int = 0,
    ) -> "OIDCProviderClient":
        """Fetch the discovery document and JWKS, and build a client.

        Raises:
            httpx.HTTPError: network failure or non-2xx response.
            OIDCProtocolError: the documents are unusable.
        """
        discovery_url = f"{config.issuer_url.rstrip('/')}{DISCOVERY_PATH}"
        response = await http_client.get(discovery_url, headers={"Accept": "application/json"})
        response.raise_for_status()
        metadata = ProviderMetadata.from_document(response.json())

        response = await http_client.get(metadata.jwks_uri, headers={"Accept": "application/json"})
        response.raise_for_status()
        jwks = response.json()
        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise OIDCProtocolError(f"JWKS at {metadata.jwks_uri} has no 'keys' array")

        logger.debug(
            "Discovered %s: issuer=%s keys=%d",
            config.id,
            metadata.issuer,
            len(jwks["keys"]),
        )
        return cls(config, metadata, jwks, http_client, clock_skew_seconds)

    # ------------------------------------------------------------------
    # Authorization request
    # ------------------------------------------------------------------

    def authorization_url(self, state: str, code_challenge: str) -> str:
        """Build the authorization endpoint URL for an S256 PKCE request."""
        params = {
            "response_type": "code",
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "scope": self._config.scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        # Keep any query the provider already put on its endpoint
        parts = urlsplit(self._metadata.authorization_endpoint)
        query = dict(parse_qsl(parts.query))
        query.update(params)
        return urlunsplit(parts._replace(query=urlencode(query)))

    # ------------------------------------------------------------------
    # Token exchange
    # ------------------------------------------------------------------

    async def exchange_code(self, code: str, code_verifier: str) -> dict:
        """Redeem an authorization code and return the validated ID token claims.

        Raises:
            httpx.HTTPError: network failure.
            OIDCProtocolError: the token endpoint rejected the request or
                returned no ID token.
            JWTError: the ID token failed validation.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._config.redirect_uri,
            "code_verifier": code_verifier,
            "client_id": self._config.client_id,
        }
        auth: Optional[httpx.BasicAuth] = None
        if "client_secret_basic" in self._metadata.token_endpoint_auth_methods_supported:
            auth = httpx.BasicAuth(self._config.client_id, self._config.client_secret)
        else:
            data["client_secret"] = self._config.client_secret

        response = await self._http.post(
            self._metadata.token_endpoint,
            data=data,
            auth=auth,
            headers={"Accept": "application/json"},
        )
        if response.status_code >= 400:
            raise OIDCProtocolError(
                f"Token endpoint returned {response.status_code}: {response.text[:500]}"
            )

        try:
            token_set = response.json()
        except ValueError as exc:
            raise OIDCProtocolError("Token endpoint returned a non-JSON body") from exc

        id_token = token_set.get("id_token") if isinstance(token_set, dict) else None
        if not id_token:
            raise OIDCProtocolError("Token response missing 'id_token'")

        return self.verify_id_token(id_token, access_token=token_set.get("access_token"))

    def verify_id_token(self, id_token: str, access_token: Optional[str] = None) -> dict:
        """Validate signature, issuer, audience and expiry; return the claims."""
        header = jose_jwt.get_unverified_header(id_token)
        algorithm = header.get("alg")
        if algorithm not in self._allowed_algorithms():
            raise JWTError(f"ID token signed with disallowed algorithm {algorithm!r}")

        return jose_jwt.decode(
            id_token,
            self._jwks,
            algorithms=[algorithm],
            audience=self._config.client_id,
            issuer=self._expected_issuer(id_token),
            access_token=access_token,
            options={"leeway": self._clock_skew},
        )

    def _allowed_algorithms(self) -> list[str]:
        # Symmetric algorithms would need the client secret as key; only the
        # provider's published asymmetric keys are trusted here.
        return [
            alg
            for alg in self._metadata.id_token_signing_alg_values_supported
            if alg != "none" and not alg.startswith("HS")
        ]

    def _expected_issuer(self, id_token: str) -> str:
        issuer = self._metadata.issuer
        if _TENANT_PLACEHOLDER not in issuer:
            return issuer
        tenant_id = jose_jwt.get_unverified_claims(id_token).get("tid")
        if not tenant_id:
            raise JWTError("Multi-tenant ID token has no 'tid' claim")
        return issuer.replace(_TENANT_PLACEHOLDER, str(tenant_id))

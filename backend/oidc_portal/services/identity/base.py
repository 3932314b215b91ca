"""Value types shared by the sign-in flow."""

from dataclasses import dataclass, field
from typing import ClassVar, Optional

from oidc_portal.core.session import SessionStore


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for one OIDC provider instance."""

    id: str             # 'microsoft', 'google', ...
    client_id: str
    client_secret: str
    issuer_url: str     # Discovery base; /.well-known/openid-configuration is appended
    scope: str
    redirect_uri: str   # Must be registered with the provider exactly as written

    # When True, a discovery/config failure aborts startup instead of
    # just marking the provider unavailable
    required: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def __repr__(self) -> str:
        # Never render the client secret
        return (
            f"ProviderConfig(id={self.id!r}, client_id={self.client_id!r}, "
            f"issuer_url={self.issuer_url!r}, required={self.required!r})"
        )


@dataclass
class IdentityClaims:
    """Normalized identity returned by a successful sign-in.

    ``subject``, ``name`` and ``email`` are always populated (falling back to
    placeholder strings); ``picture`` stays ``None`` when the provider sends
    no avatar. ``raw_claims`` keeps the provider's full claim set untouched.
    """

    provider: str
    subject: str
    name: str
    email: str
    picture: Optional[str] = None
    raw_claims: dict = field(default_factory=dict)


@dataclass(frozen=True)
class FlowState:
    """The in-flight authorization attempt bound to one session.

    Stored field by field in the server-side session so that the callback can tell which
    parts are missing. All fields are optional when read back.
    """

    CODE_VERIFIER: ClassVar[str] = "code_verifier"
    STATE: ClassVar[str] = "state"
    PROVIDER: ClassVar[str] = "provider"
    FIELDS: ClassVar[tuple[str, ...]] = (CODE_VERIFIER, STATE, PROVIDER)

    code_verifier: Optional[str] = None
    state: Optional[str] = None
    provider: Optional[str] = None

    @property
    def in_progress(self) -> bool:
        return self.provider is not None

    @classmethod
    async def load(cls, session: SessionStore) -> "FlowState":
        data = await session.get_all()
        return cls(
            code_verifier=data.get(cls.CODE_VERIFIER),
            state=data.get(cls.STATE),
            provider=data.get(cls.PROVIDER),
        )

    async def save(self, session: SessionStore) -> None:
        """Write all three fields in one step, overwriting any previous flow."""
        values = {name: getattr(self, name) for name in self.FIELDS}
        unset = [name for name, value in values.items() if value is None]
        if unset:
            await session.delete(*unset)
        present = {name: value for name, value in values.items() if value is not None}
        if present:
            await session.update(present)

    @classmethod
    async def clear(cls, session: SessionStore) -> bool:
        """Remove the flow from the session. Safe to call repeatedly.

        Returns True only for the call that actually removed a flow, so two
        requests racing to finish the same flow cannot both succeed.
        """
        return await session.delete(*cls.FIELDS) > 0

    def __repr__(self) -> str:
        return f"FlowState(provider={self.provider!r}, in_progress={self.in_progress!r})"

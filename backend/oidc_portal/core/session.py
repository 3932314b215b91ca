"""Server-side session storage for the sign-in flow.

The browser only holds a signed cookie with an opaque session id. Every
value the flow keeps between the redirect and the callback (the PKCE
verifier, the state, the provider) lives in a backend keyed by that id, so
it never reaches the user agent and deleting it is authoritative.
"""

import logging
import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Optional

import redis.asyncio as redis

if TYPE_CHECKING:
    from oidc_portal.config import Settings

logger = logging.getLogger(__name__)

# Key inside the signed cookie that carries the session id
SESSION_ID_KEY = "sid"


class SessionBackend(ABC):
    """Field storage for many sessions, keyed by session id."""

    @abstractmethod
    async def get_all(self, session_id: str) -> dict[str, str]:
        """Return every field of the session, or an empty dict."""

    @abstractmethod
    async def update(self, session_id: str, values: Mapping[str, str]) -> None:
        """Set the given fields in one step and refresh the session's TTL."""

    @abstractmethod
    async def delete(self, session_id: str, *fields: str) -> int:
        """Remove fields and return how many were present. Never raises for absent fields."""

    async def aclose(self) -> None:
        """Release connections held by the backend."""


class RedisSessionBackend(SessionBackend):
    """Sessions stored as Redis hashes that expire after ``ttl_seconds``."""

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int,
        key_prefix: str = "oidc_portal:session:",
        owns_client: bool = False,
    ) -> None:
        self.redis_client = redis_client
        self._ttl = ttl_seconds
        self._prefix = key_prefix
        self._owns_client = owns_client

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int) -> "RedisSessionBackend":
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, ttl_seconds, owns_client=True)

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    async def get_all(self, session_id: str) -> dict[str, str]:
        return await self.redis_client.hgetall(self._key(session_id))

    async def update(self, session_id: str, values: Mapping[str, str]) -> None:
        key = self._key(session_id)
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.hset(key, mapping=dict(values))
        pipe.expire(key, self._ttl)
        await pipe.execute()

    async def delete(self, session_id: str, *fields: str) -> int:
        if not fields:
            return 0
        # HDEL is atomic: of two concurrent deletes only one sees the fields
        return await self.redis_client.hdel(self._key(session_id), *fields)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.redis_client.aclose()


class MemorySessionBackend(SessionBackend):
    """In-process sessions. Only valid for a single worker (development, tests)."""

    def __init__(
        self,
        sessions: Optional[dict[str, dict[str, str]]] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._sessions = sessions if sessions is not None else {}
        self._expires: dict[str, float] = {}
        self._ttl = ttl_seconds

    def _live(self, session_id: str) -> Optional[dict[str, str]]:
        expires = self._expires.get(session_id)
        if expires is not None and expires <= time.monotonic():
            self._sessions.pop(session_id, None)
            self._expires.pop(session_id, None)
        return self._sessions.get(session_id)

    async def get_all(self, session_id: str) -> dict[str, str]:
        return dict(self._live(session_id) or {})

    async def update(self, session_id: str, values: Mapping[str, str]) -> None:
        data = self._live(session_id)
        if data is None:
            data = self._sessions[session_id] = {}
        data.update(values)
        if self._ttl is not None:
            self._expires[session_id] = time.monotonic() + self._ttl

    async def delete(self, session_id: str, *fields: str) -> int:
        data = self._live(session_id)
        if data is None:
            return 0
        removed = 0
        for name in fields:
            if data.pop(name, None) is not None:
                removed += 1
        if not data:
            self._sessions.pop(session_id, None)
            self._expires.pop(session_id, None)
        return removed


class SessionStore:
    """Field-level access to one browser session.

    ``cookie`` is the signed cookie mapping (Starlette's ``request.session``).
    It only ever receives the session id, which is created on first write.
    """

    def __init__(self, backend: SessionBackend, cookie: MutableMapping[str, Any]) -> None:
        self._backend = backend
        self._cookie = cookie

    @property
    def session_id(self) -> Optional[str]:
        return self._cookie.get(SESSION_ID_KEY)

    async def get_all(self) -> dict[str, str]:
        session_id = self.session_id
        if not session_id:
            return {}
        return await self._backend.get_all(session_id)

    async def update(self, values: Mapping[str, str]) -> None:
        session_id = self.session_id
        if not session_id:
            session_id = secrets.token_urlsafe(32)
            self._cookie[SESSION_ID_KEY] = session_id
        await self._backend.update(session_id, values)

    async def delete(self, *fields: str) -> int:
        session_id = self.session_id
        if not session_id:
            return 0
        return await self._backend.delete(session_id, *fields)

    def __repr__(self) -> str:
        return f"SessionStore(backend={type(self._backend).__name__}, bound={self.session_id is not None})"


def build_session_backend(settings: "Settings") -> SessionBackend:
    """Create the backend selected by ``SESSION_BACKEND``."""
    if settings.SESSION_BACKEND == "memory":
        if settings.ENVIRONMENT == "production":
            logger.warning("Using in-memory session backend in production; flows won't survive restarts")
        return MemorySessionBackend(ttl_seconds=settings.FLOW_STATE_TTL_SECONDS)
    return RedisSessionBackend.from_url(settings.REDIS_URL, settings.FLOW_STATE_TTL_SECONDS)

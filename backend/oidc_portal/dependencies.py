"""FastAPI dependencies for the sign-in flow."""

from fastapi import Depends, HTTPException, Request, status

from oidc_portal.core.session import SessionStore
from oidc_portal.services.identity.flow import CallbackHandler, FlowInitiator
from oidc_portal.services.identity.registry import ProviderRegistry


def _not_ready() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Authentication services not initialized",
    )


def get_registry(request: Request) -> ProviderRegistry:
    """
    Return the provider registry created by the application lifespan.

    Raises:
        HTTPException: 503 if the app has not finished starting up
    """
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise _not_ready()
    return registry


def get_session_store(request: Request) -> SessionStore:
    """Bind the server-side session backend to the id in the signed cookie."""
    backend = getattr(request.app.state, "session_backend", None)
    if backend is None:
        raise _not_ready()
    return SessionStore(backend, request.session)


def get_flow_initiator(registry: ProviderRegistry = Depends(get_registry)) -> FlowInitiator:
    return FlowInitiator(registry)


def get_callback_handler(registry: ProviderRegistry = Depends(get_registry)) -> CallbackHandler:
    return CallbackHandler(registry)

"""Sign-in API endpoints.

Thin HTTP layer over the identity flow: it moves query parameters and the
session id cookie in and out, and turns flow results into redirects or JSON.
Failures are raised as AuthFlowError and rendered by the handler registered
in ``oidc_portal.main``.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from oidc_portal.core.logging_config import get_logger
from oidc_portal.core.session import SessionStore
from oidc_portal.dependencies import (
    get_callback_handler,
    get_flow_initiator,
    get_registry,
    get_session_store,
)
from oidc_portal.schemas.auth import AuthErrorResponse, IdentityResponse
from oidc_portal.services.identity.flow import CallbackHandler, FlowInitiator
from oidc_portal.services.identity.registry import ProviderRegistry

logger = get_logger(__name__)

router = APIRouter(tags=["Authentication"])

_ERROR_RESPONSES = {
    400: {"model": AuthErrorResponse},
    502: {"model": AuthErrorResponse},
    503: {"model": AuthErrorResponse},
}


# The callback route must be registered before /auth/{provider}
@router.get("/auth/callback", response_model=IdentityResponse, responses=_ERROR_RESPONSES)
async def auth_callback(
    request: Request,
    handler: CallbackHandler = Depends(get_callback_handler),
    session: SessionStore = Depends(get_session_store),
):
    """Complete the sign-in started by /auth/{provider}."""
    identity = await handler.handle(request.query_params, session)
    logger.info("auth_callback_succeeded", provider=identity.provider)
    return IdentityResponse.from_claims(identity)


@router.get("/auth", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
async def auth_default(registry: ProviderRegistry = Depends(get_registry)):
    """Legacy entry point: start sign-in with the first configured provider."""
    provider = registry.default_provider
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No identity providers configured",
        )
    return RedirectResponse(url=f"/auth/{provider}", status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/auth/{provider}", status_code=status.HTTP_302_FOUND, responses=_ERROR_RESPONSES)
async def auth_start(
    provider: str,
    initiator: FlowInitiator = Depends(get_flow_initiator),
    session: SessionStore = Depends(get_session_store),
):
    """Start sign-in with ``provider`` and redirect the browser to it."""
    authorization_url = await initiator.initiate(provider, session)
    logger.info("auth_redirect", provider=provider)
    return RedirectResponse(url=authorization_url, status_code=status.HTTP_302_FOUND)

"""FastAPI main application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from oidc_portal.api.v1 import auth
from oidc_portal.config import Settings, settings as default_settings
from oidc_portal.core.logging_config import setup_logging
from oidc_portal.core.session import SessionBackend, build_session_backend
from oidc_portal.middleware.error_handler import ErrorHandlerMiddleware, auth_flow_error_handler
from oidc_portal.services.identity.exceptions import AuthFlowError
from oidc_portal.services.identity.registry import ProviderRegistry, build_registry

_logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    session_backend: Optional[SessionBackend] = None,
) -> FastAPI:
    """
    Build the application.

    The provider registry is created (unless one is passed in) and
    initialized during startup. A required provider that fails discovery
    raises ProviderInitializationError out of the lifespan, so the server
    refuses to start.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging()

        app_registry = registry or build_registry(settings)
        try:
            await app_registry.initialize()
        except Exception:
            await app_registry.aclose()
            raise

        app_sessions = session_backend or build_session_backend(settings)
        app.state.registry = app_registry
        app.state.session_backend = app_sessions
        _logger.info(
            "%s running at %s (providers available: %s)",
            settings.APP_NAME,
            settings.BASE_URL,
            ", ".join(app_registry.available_providers()) or "none",
        )

        yield

        await app_registry.aclose()
        await app_sessions.aclose()
        app.state.registry = None
        app.state.session_backend = None

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
    )

    # Signed cookie holding only the session id; the flow record stays server-side.
    # same_site=lax so the cookie survives the top-level redirect back from the IdP.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        same_site="lax",
        https_only=settings.ENVIRONMENT == "production",
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(AuthFlowError, auth_flow_error_handler)

    app.include_router(auth.router)

    return app


app = create_app()

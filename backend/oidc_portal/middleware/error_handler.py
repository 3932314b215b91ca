"""Error handling for the sign-in API."""

import logging
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from oidc_portal.config import settings
from oidc_portal.services.identity.exceptions import AuthFlowError

logger = logging.getLogger(__name__)


async def auth_flow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
    """Render a sign-in failure as its error kind plus minimal context."""
    logger.info(
        "Auth flow failed on %s: %s (provider=%s)",
        request.url.path,
        exc.error_code,
        exc.provider,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware for handling uncaught exceptions.

    - Logs the error server side, without the query string (callbacks carry
      authorization codes and state there)
    - Returns a safe error message to clients (no stack traces in production)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle request and catch any uncaught exceptions."""
        try:
            return await call_next(request)

        except Exception as exc:
            logger.exception(
                "Unhandled error on %s %s",
                request.method,
                request.url.path,
            )

            if settings.DEBUG:
                # Development: Show detailed error
                error_detail = {
                    "error": str(exc),
                    "type": type(exc).__name__,
                    "detail": "An error occurred processing your request",
                }
            else:
                # Production: Generic error message (never expose internals)
                error_detail = {
                    "error": "Internal server error",
                    "detail": "Something went wrong. Please try again later.",
                }

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_detail
            )

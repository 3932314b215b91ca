"""Unit tests for error handler middleware and the auth flow error handler."""

import json
from unittest.mock import Mock, patch

import pytest
from fastapi import Request, Response

from oidc_portal.middleware.error_handler import ErrorHandlerMiddleware, auth_flow_error_handler
from oidc_portal.services.identity.exceptions import (
    OAuthProviderError,
    StateMismatch,
    TokenExchangeFailure,
)


@pytest.fixture
def mock_request():
    """Create mock request."""
    request = Mock(spec=Request)
    request.method = "GET"
    request.url = Mock()
    request.url.path = "/auth/callback"
    request.client = Mock()
    request.client.host = "127.0.0.1"
    return request


@pytest.mark.unit
class TestErrorHandlerMiddleware:
    """Test error handler middleware."""

    @pytest.fixture
    def middleware(self):
        """Create middleware instance."""
        app = Mock()
        return ErrorHandlerMiddleware(app)

    @pytest.mark.asyncio
    async def test_passes_through_successful_response(self, middleware, mock_request):
        async def call_next(request):
            response = Mock(spec=Response)
            response.status_code = 200
            return response

        response = await middleware.dispatch(mock_request, call_next)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_generic_500_in_production(self, middleware, mock_request):
        async def call_next(request):
            raise RuntimeError("database password is hunter2")

        with patch("oidc_portal.middleware.error_handler.settings") as mock_settings:
            mock_settings.DEBUG = False
            response = await middleware.dispatch(mock_request, call_next)

        assert response.status_code == 500
        assert b"hunter2" not in response.body

    @pytest.mark.asyncio
    async def test_detailed_500_in_debug(self, middleware, mock_request):
        async def call_next(request):
            raise RuntimeError("boom")

        with patch("oidc_portal.middleware.error_handler.settings") as mock_settings:
            mock_settings.DEBUG = True
            response = await middleware.dispatch(mock_request, call_next)

        body = json.loads(response.body)
        assert body["type"] == "RuntimeError"


@pytest.mark.unit
class TestAuthFlowErrorHandler:
    """Test rendering of AuthFlowError subclasses."""

    @pytest.mark.asyncio
    async def test_state_mismatch(self, mock_request):
        response = await auth_flow_error_handler(mock_request, StateMismatch("microsoft"))

        assert response.status_code == 400
        assert json.loads(response.body) == {
            "error": "state_mismatch",
            "detail": "Invalid state parameter",
            "provider": "microsoft",
        }

    @pytest.mark.asyncio
    async def test_token_exchange_failure_status(self, mock_request):
        response = await auth_flow_error_handler(mock_request, TokenExchangeFailure("google"))
        assert response.status_code == 502

    @pytest.mark.asyncio
    async def test_oauth_error_carries_idp_code(self, mock_request):
        exc = OAuthProviderError("access_denied", "User denied access")
        response = await auth_flow_error_handler(mock_request, exc)

        body = json.loads(response.body)
        assert body["detail"] == "access_denied: User denied access"
        assert body["oauth_error"] == "access_denied"
        assert body["provider"] is None

"""Shared bearer token authentication for the /api routes."""

import secrets

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from threadly.api.middleware.errors import build_error_response
from threadly.exceptions import ErrorType


logger = structlog.get_logger(__name__)

PROTECTED_PREFIX = "/api/"


class BearerTokenAuthMiddleware(BaseHTTPMiddleware):
    """Requires ``Authorization: Bearer <auth_token>`` on /api routes.

    Disabled when no token is configured. The OAuth callback and the health
    check stay public.
    """

    def __init__(self, app: ASGIApp, auth_token: str | None) -> None:
        super().__init__(app)
        self.auth_token = auth_token

    def _extract_bearer_token(self, request: Request) -> str | None:
        auth_header = request.headers.get("authorization")
        if not auth_header:
            return None
        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None
        return parts[1]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (
            not self.auth_token
            or request.method == "OPTIONS"
            or not request.url.path.startswith(PROTECTED_PREFIX)
        ):
            return await call_next(request)

        token = self._extract_bearer_token(request)
        if token is None:
            logger.warning("api_auth_missing_token", path=request.url.path)
            return build_error_response(
                401, ErrorType.AUTHENTICATION, "Unauthorized: No token provided"
            )
        if not secrets.compare_digest(token, self.auth_token):
            logger.warning("api_auth_invalid_token", path=request.url.path)
            return build_error_response(
                401, ErrorType.AUTHENTICATION, "Unauthorized: Invalid token"
            )
        return await call_next(request)

"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: bearer token verification on every non-public path
- Viewer: the authenticated identity attached to request.state
- get_viewer: dependency for route handlers
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from memoryhaze.auth.verifier import TokenVerifier
from memoryhaze.errors import ApiError, ApiErrorCode
from memoryhaze.responses import error_response

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from JWT sub claim).
        public_id: Human-readable sequential id (usr-00001).
        is_admin: Whether the viewer may use /admin routes.
    """

    user_id: UUID
    public_id: str | None = None
    is_admin: bool = False


# Called with (user_id, email claim); returns an object with public_id and is_admin
BootstrapCallback = Callable[[UUID, str | None], Any]


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract bearer token
    3. Verify token via TokenVerifier
    4. Bootstrap the user row (first login assigns the public id)
    5. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        bootstrap_callback: BootstrapCallback | None = None,
    ):
        super().__init__(app)
        self.verifier = verifier
        self.bootstrap_callback = bootstrap_callback

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token = self._bearer_token(request)
        if token is None:
            return self._error(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required", 401)

        try:
            claims = self.verifier.verify(token)
        except ApiError as e:
            return self._error(e.code, e.message, e.status_code)

        user_id = UUID(claims["sub"])
        viewer = Viewer(user_id=user_id)

        if self.bootstrap_callback:
            try:
                user = self.bootstrap_callback(user_id, claims.get("email"))
            except Exception as e:
                logger.exception("Bootstrap failed for user %s: %s", user_id, e)
                return self._error(ApiErrorCode.E_INTERNAL, "Internal server error", 500)
            viewer.public_id = user.public_id
            viewer.is_admin = bool(user.is_admin)

        request.state.viewer = viewer
        return await call_next(request)

    def _bearer_token(self, request: Request) -> str | None:
        auth_header = request.headers.get(AUTHORIZATION_HEADER)
        if not auth_header:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_header", "request_path": request.url.path},
            )
            return None

        scheme, _, token = auth_header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return None
        return token

    def _error(self, code: ApiErrorCode, message: str, status_code: int) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=error_response(code, message))


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer

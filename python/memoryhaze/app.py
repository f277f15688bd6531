"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Collaborator Lifecycle:
- The asset store and notifier are built from Settings at startup and stored
  on app.state; routes read them through memoryhaze.api.deps
- Tests may pre-populate app.state with fakes; the lifespan leaves them alone
"""

import json
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from memoryhaze.api.routes import create_api_router
from memoryhaze.auth.middleware import AuthMiddleware
from memoryhaze.auth.verifier import SupabaseJwksVerifier
from memoryhaze.config import get_settings
from memoryhaze.db.models import User
from memoryhaze.db.session import get_session_factory
from memoryhaze.errors import ApiError, ApiErrorCode
from memoryhaze.logging import configure_logging, get_logger
from memoryhaze.middleware.request_id import RequestIDMiddleware
from memoryhaze.notifications.notifier import get_notifier
from memoryhaze.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from memoryhaze.services.bootstrap import ensure_user
from memoryhaze.storage.client import get_asset_store

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_bootstrap_callback(session_factory: sessionmaker[Session] | None = None):
    """Create a bootstrap callback that creates its own database session.

    The callback is called by the auth middleware for each authenticated request.
    It creates a fresh database session, ensures the user row exists, and closes it.
    """
    session_factory = session_factory or get_session_factory()

    def bootstrap(user_id: UUID, email: str | None) -> User:
        db = session_factory()
        try:
            return ensure_user(db, user_id, email)
        finally:
            db.close()

    return bootstrap


def create_token_verifier() -> SupabaseJwksVerifier:
    """Create the token verifier using Supabase JWKS."""
    settings = get_settings()

    return SupabaseJwksVerifier(
        jwks_url=settings.supabase_jwks_url,  # type: ignore
        issuer=settings.normalized_issuer,  # type: ignore
        audiences=settings.audience_list,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the asset store and notifier once per process."""
    settings = get_settings()

    if getattr(app.state, "asset_store", None) is None:
        app.state.asset_store = get_asset_store(settings)
    if getattr(app.state, "notifier", None) is None:
        app.state.notifier = get_notifier(settings)

    logger.info(
        "collaborators_initialized",
        asset_store=type(app.state.asset_store).__name__,
        notifier=type(app.state.notifier).__name__,
        env=settings.memoryhaze_env.value,
    )

    yield


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier=None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        session_factory: Session factory for user bootstrap (defaults to the
            process-wide factory).

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="MemoryHaze API",
        description="Backend API for MemoryHaze - personalized song gifts",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.asset_store = None
    app.state.notifier = None

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    # Add auth middleware (runs on all requests except public paths)
    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            verifier=token_verifier or create_token_verifier(),
            bootstrap_callback=create_bootstrap_callback(session_factory),
        )
        logger.info("auth_middleware_enabled")

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")

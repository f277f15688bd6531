"""API response envelope helpers and exception handlers.

All API responses use a consistent envelope:
- Success: { "data": ... }
- Error: { "error": { "code": "E_...", "message": "...", "request_id": "...", "details": ... } }

``details`` is only present when the error carries structured context
(field errors, current/expected status, intended-recipient flag).
"""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from memoryhaze.errors import ApiError, ApiErrorCode
from memoryhaze.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(data: Any) -> dict[str, Any]:
    """Wrap response data in the success envelope."""
    return {"data": data}


def error_response(
    code: ApiErrorCode,
    message: str,
    request_id: str | None = None,
    details: Any = None,
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID (auto-populated from context if None).
        details: Optional structured detail.

    Returns:
        Dict with "error" key containing code, message, and optional request_id/details.
    """
    if request_id is None:
        request_id = get_request_id()

    error: dict[str, Any] = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id
    if details is not None:
        error["details"] = details

    return {"error": error}


def validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    """Flatten pydantic/FastAPI validation errors into field-level entries.

    The leading location element ("body", "query", "path") is dropped.
    """
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        message = str(err.get("msg", "Invalid value"))
        # pydantic prefixes custom ValueError messages
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        details.append({"field": ".".join(loc) or "body", "message": message})
    return details


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, details=exc.details),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors with field-level details."""
    return JSONResponse(
        status_code=400,
        content=error_response(
            ApiErrorCode.E_VALIDATION_FAILED,
            "Validation failed",
            details=validation_details(exc),
        ),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", path=request.url.path, error=str(exc))

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )

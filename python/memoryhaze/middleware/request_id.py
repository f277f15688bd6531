"""X-Request-ID middleware for request correlation.

Accepts a caller-supplied X-Request-ID when it is well formed (UUIDs are
lowercased), otherwise mints a UUID4. The id is stored on request.state,
bound into the logging context, echoed on the response, and included in the
single ``request_completed`` access event.

Must be registered LAST so it wraps every other middleware, including auth
failures.
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from memoryhaze.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = get_logger(__name__)


def normalize_request_id(value: str | None) -> str | None:
    """Return the canonical form of an incoming request id, or None if unusable."""
    if not value or not _REQUEST_ID_PATTERN.match(value):
        return None
    try:
        return str(uuid.UUID(value)) if len(value) == 36 else value
    except ValueError:
        return value


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Request id propagation and access logging."""

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.monotonic()
        request_id = normalize_request_id(request.headers.get(REQUEST_ID_HEADER)) or str(
            uuid.uuid4()
        )
        request.state.request_id = request_id
        set_request_context(request_id)

        try:
            response = await call_next(request)

            viewer = getattr(request.state, "viewer", None)
            if viewer is not None:
                set_request_context(request_id, str(viewer.user_id))

            response.headers[REQUEST_ID_HEADER] = request_id
            if self.log_requests:
                logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                )
            return response
        except Exception:
            logger.exception("request_failed", method=request.method, path=request.url.path)
            raise
        finally:
            clear_request_context()

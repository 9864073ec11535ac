"""Bind the correlation ID and calling identity to every log line of a request."""

import re
from collections.abc import Awaitable, Callable
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Forwarded IDs end up in log lines and response headers
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]{1,64}")

# Header -> log field. Values are logged as sent; get_caller validates them.
CALLER_LOG_FIELDS = {
    "X-Caller-User-Id": "caller_user_id",
    "X-Caller-Character-Id": "caller_character_id",
    "X-Caller-Is-Admin": "caller_is_admin",
}


def resolve_request_id(incoming: str | None) -> str:
    """Reuse the session layer's correlation ID when it is well formed, else mint one."""
    if incoming and _REQUEST_ID_PATTERN.fullmatch(incoming):
        return incoming
    return str(uuid4())


class CallerContextMiddleware(BaseHTTPMiddleware):
    """
    Per-request structlog context.

    Binds request_id plus whichever caller headers are present, so that
    service events such as role_granted or application_status_changed
    carry who acted without every call site passing it along. The
    request_id is also stored on request.state for error bodies and
    echoed in the X-Request-ID response header.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        caller_fields = {
            field: request.headers[header]
            for header, field in CALLER_LOG_FIELDS.items()
            if request.headers.get(header)
        }

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, **caller_fields)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()

"""One access log event per API request."""

import time
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from structlog import get_logger

logger = get_logger()

# Polled by the deployment's health checks
QUIET_PATHS = frozenset({"/", "/health"})

SLOW_REQUEST_MS = 1000


def route_template(request: Request) -> str:
    """Matched route path (e.g. /hr/applications/{application_id}), or the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Log each request once it has a status.

    Level follows the outcome: 5xx is an error, 4xx a warning (denied
    access and conflicts are worth seeing), everything else info.
    Caller identity comes from CallerContextMiddleware's bound context.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        else:
            log = logger.info

        log(
            "request_completed",
            method=request.method,
            route=route_template(request),
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            slow=duration_ms >= SLOW_REQUEST_MS,
        )
        return response

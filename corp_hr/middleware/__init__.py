"""HTTP middleware for cross-cutting concerns."""

from corp_hr.middleware.access_log import AccessLogMiddleware
from corp_hr.middleware.caller_context import CallerContextMiddleware
from corp_hr.middleware.rate_limit import get_limiter, limiter, setup_rate_limiting

__all__ = [
    "CallerContextMiddleware",
    "AccessLogMiddleware",
    "setup_rate_limiting",
    "get_limiter",
    "limiter",
]

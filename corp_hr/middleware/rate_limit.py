"""Rate limiting for write-heavy HR endpoints."""

from fastapi import FastAPI
from slowapi import (
    Limiter,
    _rate_limit_exceeded_handler,  # type: ignore[reportPrivateUsage]
)
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request


def caller_key(request: Request) -> str:
    """
    Rate limit per calling user, falling back to client address.

    The session layer forwards the authenticated user in X-Caller-User-Id;
    every caller behind it shares one client IP.
    """
    user_id = request.headers.get("X-Caller-User-Id")
    if user_id:
        return f"user:{user_id.strip().lower()}"
    return get_remote_address(request)


# Shared instance; route decorators in corp_hr.api reference it at import time
limiter = Limiter(key_func=caller_key)


def get_limiter() -> Limiter:
    """Return the shared rate limiter."""
    return limiter


def setup_rate_limiting(app: FastAPI) -> Limiter:
    """
    Configure rate limiting for the application.

    Returns:
        Limiter instance for use in route decorators
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[reportUnknownMemberType]  # FastAPI handler
    return limiter

"""Security utilities for internal API authentication."""

import hmac

from structlog import get_logger

logger = get_logger()


def verify_api_key(expected: str, provided: str | None) -> bool:
    """
    Verify the shared internal API key.

    Uses constant-time comparison to prevent timing attacks.

    Args:
        expected: INTERNAL_API_KEY from environment
        provided: X-API-Key header value, if any

    Returns:
        True if the key matches, False otherwise
    """
    if not provided:
        logger.warning("api_key_missing")
        return False

    # Constant-time comparison (security critical!)
    is_valid = hmac.compare_digest(expected.encode(), provided.encode())

    if not is_valid:
        logger.warning("api_key_invalid", provided_prefix=provided[:4])

    return is_valid

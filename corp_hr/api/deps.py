"""Request dependencies: internal API key and caller identity headers."""

from __future__ import annotations

from fastapi import Header, HTTPException
from pydantic import BaseModel
from structlog import get_logger

from corp_hr.core.config import settings
from corp_hr.utils.ids import to_uuid
from corp_hr.utils.security import verify_api_key

logger = get_logger()

TRUE_VALUES = {"1", "true", "yes", "on"}


class Caller(BaseModel):
    """Identity of the caller as resolved by the upstream session layer."""

    user_id: str
    character_id: str | None = None
    is_admin: bool = False
    character_ids: list[str] = []


async def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    """Reject requests without the internal API key, when one is configured."""
    if settings.internal_api_key is None:
        return
    if not verify_api_key(settings.internal_api_key, x_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def get_caller(
    x_caller_user_id: str | None = Header(default=None),
    x_caller_character_id: str | None = Header(default=None),
    x_caller_is_admin: str | None = Header(default=None),
    x_caller_character_ids: str | None = Header(default=None),
) -> Caller:
    """
    Build the caller from X-Caller-* headers.

    X-Caller-Character-Ids is a comma separated list of every character the
    user has linked; role management uses it to detect the corporation CEO.
    """
    if not x_caller_user_id:
        raise HTTPException(status_code=401, detail="Missing X-Caller-User-Id header")

    user_id = str(to_uuid(x_caller_user_id.strip(), "user_id"))

    character_ids = [
        c.strip() for c in (x_caller_character_ids or "").split(",") if c.strip()
    ]
    if x_caller_character_id and x_caller_character_id not in character_ids:
        character_ids.append(x_caller_character_id)

    return Caller(
        user_id=user_id,
        character_id=x_caller_character_id or None,
        is_admin=(x_caller_is_admin or "").strip().lower() in TRUE_VALUES,
        character_ids=character_ids,
    )


def require_admin(caller: Caller) -> None:
    """Raise 403 unless the caller is a site admin."""
    if not caller.is_admin:
        logger.warning("admin_required", user_id=caller.user_id)
        raise HTTPException(status_code=403, detail="Admin access required")


def require_character(caller: Caller) -> str:
    """Raise 422 unless the caller sent X-Caller-Character-Id."""
    if not caller.character_id:
        raise HTTPException(status_code=422, detail="Missing X-Caller-Character-Id header")
    return caller.character_id

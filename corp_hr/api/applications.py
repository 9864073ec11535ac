"""Application endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from structlog import get_logger

from corp_hr.api.deps import Caller, get_caller, require_admin, require_character
from corp_hr.core.config import settings
from corp_hr.middleware.rate_limit import limiter
from corp_hr.models.hr import (
    Application,
    ApplicationCreate,
    ApplicationDetail,
    ApplicationFilters,
    ApplicationStatusUpdate,
)
from corp_hr.services.hr import hr

logger = get_logger()
router = APIRouter(prefix="/hr/applications", tags=["applications"])


@router.post("", response_model=Application, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.submission_rate_limit)
async def submit_application(
    request: Request,
    body: ApplicationCreate,
    caller: Caller = Depends(get_caller),
) -> Application:
    """
    Submit an application for the calling character.

    Returns 409 if the caller already has a pending or under review
    application for the corporation.
    """
    character_id = require_character(caller)
    return await hr.submit_application(
        caller.user_id,
        character_id,
        body.character_name,
        body.corporation_id,
        body.application_text,
    )


@router.get("", response_model=list[Application])
async def list_applications(
    filters: Annotated[ApplicationFilters, Query()],
    caller: Caller = Depends(get_caller),
) -> list[Application]:
    """
    List applications visible to the caller.

    Admins see everything; everyone else sees their own applications plus
    those for corporations where they hold an HR role.
    """
    return await hr.list_applications(filters, caller.user_id, caller.is_admin)


@router.get("/{application_id}", response_model=ApplicationDetail)
async def get_application(
    application_id: str, caller: Caller = Depends(get_caller)
) -> ApplicationDetail:
    """Get one application with recommendations (and activity log for HR/admin)."""
    return await hr.get_application(application_id, caller.user_id, caller.is_admin)


@router.patch("/{application_id}/status")
async def update_application_status(
    application_id: str,
    body: ApplicationStatusUpdate,
    caller: Caller = Depends(get_caller),
) -> dict[str, str]:
    """
    Change an application's status.

    Requires hr_reviewer or higher in the application's corporation, or
    admin. The caller is recorded as reviewer.
    """
    character_id = require_character(caller)
    await hr.ensure_can_review(application_id, caller.user_id, caller.is_admin)
    await hr.update_application_status(
        application_id, body.status, caller.user_id, character_id, body.review_notes
    )
    return {"status": "updated", "application_status": body.status}


@router.post("/{application_id}/withdraw")
async def withdraw_application(
    application_id: str, caller: Caller = Depends(get_caller)
) -> dict[str, str]:
    """Withdraw the caller's own application."""
    character_id = require_character(caller)
    await hr.withdraw_application(application_id, caller.user_id, character_id)
    return {"status": "withdrawn"}


@router.delete("/{application_id}")
async def delete_application(
    application_id: str, caller: Caller = Depends(get_caller)
) -> dict[str, str]:
    """Permanently delete an application. Admin only."""
    require_admin(caller)
    logger.info("admin_deleting_application", application_id=application_id)
    await hr.delete_application(application_id)
    return {"status": "deleted"}

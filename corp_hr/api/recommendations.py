"""Recommendation endpoints."""

from fastapi import APIRouter, Depends, Request, status

from corp_hr.api.deps import Caller, get_caller, require_character
from corp_hr.core.config import settings
from corp_hr.middleware.rate_limit import limiter
from corp_hr.models.hr import Recommendation, RecommendationCreate, RecommendationUpdate
from corp_hr.services.hr import hr

router = APIRouter(prefix="/hr", tags=["recommendations"])


@router.post(
    "/applications/{application_id}/recommendations",
    response_model=Recommendation,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.submission_rate_limit)
async def add_recommendation(
    request: Request,
    application_id: str,
    body: RecommendationCreate,
    caller: Caller = Depends(get_caller),
) -> Recommendation:
    """Recommend someone else's open application. One recommendation per caller."""
    character_id = require_character(caller)
    return await hr.add_recommendation(
        application_id,
        caller.user_id,
        character_id,
        body.character_name,
        body.recommendation_text,
        body.sentiment,
    )


@router.get("/recommendations/{recommendation_id}", response_model=Recommendation)
async def get_recommendation(
    recommendation_id: str, caller: Caller = Depends(get_caller)
) -> Recommendation:
    """Get a recommendation. Visible to whoever can view its application."""
    recommendation = await hr.get_recommendation(recommendation_id)
    # Raises 403/404 when the application is out of the caller's scope
    await hr.get_application(recommendation.application_id, caller.user_id, caller.is_admin)
    return recommendation


@router.put("/recommendations/{recommendation_id}")
async def update_recommendation(
    recommendation_id: str,
    body: RecommendationUpdate,
    caller: Caller = Depends(get_caller),
) -> dict[str, str]:
    """Update a recommendation. Author or admin only."""
    character_id = require_character(caller)
    await hr.update_recommendation(
        recommendation_id,
        caller.user_id,
        character_id,
        body.recommendation_text,
        body.sentiment,
        caller.is_admin,
    )
    return {"status": "updated"}


@router.delete("/recommendations/{recommendation_id}")
async def delete_recommendation(
    recommendation_id: str, caller: Caller = Depends(get_caller)
) -> dict[str, str]:
    """Delete a recommendation. Author or admin only."""
    character_id = require_character(caller)
    await hr.delete_recommendation(
        recommendation_id, caller.user_id, character_id, caller.is_admin
    )
    return {"status": "deleted"}

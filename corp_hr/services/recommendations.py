"""Peer recommendations attached to applications."""

from __future__ import annotations

import asyncpg
from structlog import get_logger

from corp_hr.core.database import db, record_to_dict
from corp_hr.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from corp_hr.models.hr import (
    OPEN_APPLICATION_STATUSES,
    Recommendation,
    RecommendationSentiment,
)
from corp_hr.services.activity_log import log_activity
from corp_hr.utils.ids import to_uuid

logger = get_logger()

RECOMMENDATION_COLUMNS = """
    id, application_id, user_id, character_id, character_name,
    recommendation_text, sentiment, created_at, updated_at
"""


def _to_recommendation(row: asyncpg.Record) -> Recommendation:
    return Recommendation.model_validate(record_to_dict(row))


def _parse_sentiment(sentiment: str) -> RecommendationSentiment:
    try:
        return RecommendationSentiment(sentiment)
    except ValueError as e:
        raise ValidationError(
            f"Invalid sentiment: {sentiment!r}", context={"sentiment": sentiment}
        ) from e


async def get_recommendation(recommendation_id: str) -> Recommendation:
    """
    Get a single recommendation.

    Raises:
        NotFoundError: If the recommendation does not exist
    """
    row = await db.fetchrow(
        f"SELECT {RECOMMENDATION_COLUMNS} FROM application_recommendations WHERE id = $1",
        to_uuid(recommendation_id, "recommendation_id"),
    )
    if not row:
        raise NotFoundError(
            "Recommendation not found", context={"recommendation_id": recommendation_id}
        )
    return _to_recommendation(row)


async def add_recommendation(
    application_id: str,
    user_id: str,
    character_id: str,
    character_name: str,
    recommendation_text: str,
    sentiment: RecommendationSentiment,
) -> Recommendation:
    """
    Add a recommendation for an application.

    Checks, in order: application exists, caller is not the applicant,
    application is still open, caller has not already recommended it.

    Raises:
        NotFoundError: If the application does not exist
        ForbiddenError: If the caller owns the application
        ValidationError: If the application is not pending or under review
        ConflictError: If the caller already recommended this application
    """
    sentiment = _parse_sentiment(sentiment)

    try:
        async with db.transaction() as conn:
            application = await conn.fetchrow(
                "SELECT id, user_id, status FROM applications WHERE id = $1",
                to_uuid(application_id, "application_id"),
            )
            if not application:
                raise NotFoundError(
                    "Application not found", context={"application_id": application_id}
                )

            if application["user_id"] == to_uuid(user_id, "user_id"):
                raise ForbiddenError(
                    "You cannot recommend your own application",
                    context={"application_id": application_id},
                )

            if application["status"] not in OPEN_APPLICATION_STATUSES:
                raise ValidationError(
                    "Can only recommend applications that are pending or under review",
                    context={"application_id": application_id, "status": application["status"]},
                )

            existing = await conn.fetchval(
                """
                SELECT id FROM application_recommendations
                WHERE application_id = $1 AND user_id = $2
                """,
                to_uuid(application_id, "application_id"),
                to_uuid(user_id, "user_id"),
            )
            if existing:
                raise ConflictError(
                    "You have already recommended this application",
                    context={"application_id": application_id},
                )

            row = await conn.fetchrow(
                f"""
                INSERT INTO application_recommendations
                (application_id, user_id, character_id, character_name,
                 recommendation_text, sentiment)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {RECOMMENDATION_COLUMNS}
                """,
                to_uuid(application_id, "application_id"),
                to_uuid(user_id, "user_id"),
                character_id,
                character_name,
                recommendation_text,
                sentiment.value,
            )
            recommendation = _to_recommendation(row)

            await log_activity(
                conn,
                application_id,
                user_id,
                character_id,
                "recommendation_added",
                None,
                sentiment.value,
                {"recommendationId": recommendation.id},
            )
    except asyncpg.UniqueViolationError as e:
        raise ConflictError(
            "You have already recommended this application",
            context={"application_id": application_id},
        ) from e

    logger.info(
        "recommendation_added",
        recommendation_id=recommendation.id,
        application_id=application_id,
        sentiment=sentiment.value,
    )
    return recommendation


async def update_recommendation(
    recommendation_id: str,
    user_id: str,
    character_id: str,
    recommendation_text: str,
    sentiment: RecommendationSentiment,
    is_admin: bool,
) -> None:
    """
    Update a recommendation's text and sentiment. Author or admin only.

    Raises:
        NotFoundError: If the recommendation does not exist
        ForbiddenError: If the caller is neither the author nor an admin
    """
    sentiment = _parse_sentiment(sentiment)

    async with db.transaction() as conn:
        row = await conn.fetchrow(
            """
            SELECT application_id, user_id, sentiment
            FROM application_recommendations
            WHERE id = $1
            FOR UPDATE
            """,
            to_uuid(recommendation_id, "recommendation_id"),
        )
        if not row:
            raise NotFoundError(
                "Recommendation not found", context={"recommendation_id": recommendation_id}
            )

        if row["user_id"] != to_uuid(user_id, "user_id") and not is_admin:
            raise ForbiddenError(
                "You can only update your own recommendations",
                context={"recommendation_id": recommendation_id},
            )

        previous_sentiment = row["sentiment"]

        await conn.execute(
            """
            UPDATE application_recommendations
            SET recommendation_text = $2, sentiment = $3, updated_at = NOW()
            WHERE id = $1
            """,
            to_uuid(recommendation_id, "recommendation_id"),
            recommendation_text,
            sentiment.value,
        )

        await log_activity(
            conn,
            str(row["application_id"]),
            user_id,
            character_id,
            "recommendation_updated",
            previous_sentiment,
            sentiment.value,
            {"recommendationId": recommendation_id},
        )

    logger.info(
        "recommendation_updated",
        recommendation_id=recommendation_id,
        previous_sentiment=previous_sentiment,
        new_sentiment=sentiment.value,
    )


async def delete_recommendation(
    recommendation_id: str,
    user_id: str,
    character_id: str,
    is_admin: bool,
) -> None:
    """
    Delete a recommendation. Author or admin only.

    The audit entry is written first and in the same transaction, so a failed
    log write leaves the recommendation in place.

    Raises:
        NotFoundError: If the recommendation does not exist
        ForbiddenError: If the caller is neither the author nor an admin
    """
    async with db.transaction() as conn:
        row = await conn.fetchrow(
            """
            SELECT application_id, user_id, sentiment
            FROM application_recommendations
            WHERE id = $1
            FOR UPDATE
            """,
            to_uuid(recommendation_id, "recommendation_id"),
        )
        if not row:
            raise NotFoundError(
                "Recommendation not found", context={"recommendation_id": recommendation_id}
            )

        if row["user_id"] != to_uuid(user_id, "user_id") and not is_admin:
            raise ForbiddenError(
                "You can only delete your own recommendations",
                context={"recommendation_id": recommendation_id},
            )

        await log_activity(
            conn,
            str(row["application_id"]),
            user_id,
            character_id,
            "recommendation_deleted",
            row["sentiment"],
            None,
            {"recommendationId": recommendation_id},
        )

        await conn.execute(
            "DELETE FROM application_recommendations WHERE id = $1",
            to_uuid(recommendation_id, "recommendation_id"),
        )

    logger.info("recommendation_deleted", recommendation_id=recommendation_id)

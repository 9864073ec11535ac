"""Append-only audit trail for application state changes."""

from __future__ import annotations

from typing import Any

import asyncpg
from structlog import get_logger

from corp_hr.core.database import db, record_to_dict
from corp_hr.models.hr import ActivityLogEntry
from corp_hr.utils.ids import to_uuid

logger = get_logger()


async def log_activity(
    conn: asyncpg.Connection,
    application_id: str,
    user_id: str,
    character_id: str,
    action: str,
    previous_value: str | None,
    new_value: str | None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Append one activity entry.

    Takes the caller's connection so the entry commits (or rolls back) with
    the mutation it describes.

    Args:
        conn: Connection inside the caller's transaction
        application_id: Application UUID
        user_id: Acting user UUID
        character_id: Acting character id
        action: e.g. "submitted", "status_changed", "recommendation_added"
        previous_value: Value before the change, if any
        new_value: Value after the change, if any
        metadata: Extra context stored as jsonb
    """
    await conn.execute(
        """
        INSERT INTO application_activity_log
        (application_id, user_id, character_id, action, previous_value, new_value, metadata)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        """,
        to_uuid(application_id, "application_id"),
        to_uuid(user_id, "user_id"),
        character_id,
        action,
        previous_value,
        new_value,
        metadata,
    )

    logger.info(
        "activity_logged",
        application_id=application_id,
        action=action,
        previous_value=previous_value,
        new_value=new_value,
    )


async def get_activity_log(application_id: str) -> list[ActivityLogEntry]:
    """Return the audit trail for an application, newest first."""
    rows = await db.fetch(
        """
        SELECT id, application_id, user_id, character_id, action,
               previous_value, new_value, metadata, "timestamp"
        FROM application_activity_log
        WHERE application_id = $1
        ORDER BY "timestamp" DESC
        """,
        to_uuid(application_id, "application_id"),
    )

    return [ActivityLogEntry.model_validate(record_to_dict(row)) for row in rows]

"""Application lifecycle: submit, list, get, review, withdraw, delete."""

from __future__ import annotations

from typing import Any

import asyncpg
from structlog import get_logger

from corp_hr.core.database import db, record_to_dict
from corp_hr.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from corp_hr.models.hr import (
    OPEN_APPLICATION_STATUSES,
    Application,
    ApplicationDetail,
    ApplicationFilters,
    ApplicationStatus,
    Recommendation,
)
from corp_hr.services.activity_log import get_activity_log, log_activity
from corp_hr.utils.ids import to_uuid

logger = get_logger()

APPLICATION_COLUMNS = """
    id, corporation_id, user_id, character_id, character_name, application_text,
    status, reviewed_by, reviewed_at, review_notes, created_at, updated_at
"""


def _to_application(row: asyncpg.Record) -> Application:
    return Application.model_validate(record_to_dict(row))


async def _fetch_application_row(application_id: str) -> asyncpg.Record:
    row = await db.fetchrow(
        f"SELECT {APPLICATION_COLUMNS} FROM applications WHERE id = $1",
        to_uuid(application_id, "application_id"),
    )
    if not row:
        raise NotFoundError("Application not found", context={"application_id": application_id})
    return row


async def has_pending_application(user_id: str, corporation_id: str) -> bool:
    """Check whether the user has a pending or under-review application for the corporation."""
    exists = await db.fetchval(
        """
        SELECT EXISTS (
            SELECT 1 FROM applications
            WHERE user_id = $1 AND corporation_id = $2 AND status = ANY($3::text[])
        )
        """,
        to_uuid(user_id, "user_id"),
        corporation_id,
        list(OPEN_APPLICATION_STATUSES),
    )
    return bool(exists)


async def get_application_corporation(application_id: str) -> str:
    """
    Return the corporation an application targets.

    Raises:
        NotFoundError: If the application does not exist
    """
    row = await _fetch_application_row(application_id)
    return row["corporation_id"]


async def submit_application(
    user_id: str,
    character_id: str,
    character_name: str,
    corporation_id: str,
    application_text: str,
) -> Application:
    """
    Submit a new application to a corporation.

    Args:
        user_id: Applicant user UUID
        character_id: Applicant character id
        character_name: Character name snapshot
        corporation_id: Target corporation id
        application_text: Free-form application body

    Returns:
        Created application with status "pending"

    Raises:
        ConflictError: If the user already has an open application for the corporation
    """
    if await has_pending_application(user_id, corporation_id):
        raise ConflictError(
            "You already have a pending or under review application for this corporation",
            context={"user_id": user_id, "corporation_id": corporation_id},
        )

    try:
        async with db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO applications
                (corporation_id, user_id, character_id, character_name, application_text, status)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {APPLICATION_COLUMNS}
                """,
                corporation_id,
                to_uuid(user_id, "user_id"),
                character_id,
                character_name,
                application_text,
                ApplicationStatus.PENDING.value,
            )
            application = _to_application(row)

            await log_activity(
                conn,
                application.id,
                user_id,
                character_id,
                "submitted",
                None,
                ApplicationStatus.PENDING.value,
            )
    except asyncpg.UniqueViolationError as e:
        # Concurrent submit slipped past the pre-check; the partial index caught it
        raise ConflictError(
            "You already have a pending or under review application for this corporation",
            context={"user_id": user_id, "corporation_id": corporation_id},
        ) from e

    logger.info(
        "application_submitted",
        application_id=application.id,
        corporation_id=corporation_id,
        user_id=user_id,
    )
    return application


async def list_applications(
    filters: ApplicationFilters,
    user_id: str,
    is_admin: bool,
    user_hr_corporations: list[str] | None = None,
) -> list[Application]:
    """
    List applications matching filters, scoped to what the caller may see.

    Non-admins only see rows they own or rows for corporations where they
    hold an HR role. The scope is a SQL predicate, so LIMIT/OFFSET page over
    visible rows only.

    Args:
        filters: corporation_id, user_id, status, limit, offset
        user_id: Caller user UUID
        is_admin: Site admin flag from the session layer
        user_hr_corporations: Corporations where the caller holds an active HR role

    Returns:
        Applications, newest first
    """
    conditions: list[str] = []
    args: list[Any] = []

    def bind(value: Any) -> str:
        args.append(value)
        return f"${len(args)}"

    if filters.corporation_id:
        conditions.append(f"corporation_id = {bind(filters.corporation_id)}")
    if filters.user_id:
        conditions.append(f"user_id = {bind(to_uuid(filters.user_id, 'user_id'))}")
    if filters.status:
        conditions.append(f"status = {bind(filters.status)}")

    if not is_admin:
        # Own applications OR applications for corporations with HR access
        auth_conditions = [f"user_id = {bind(to_uuid(user_id, 'user_id'))}"]
        if user_hr_corporations:
            auth_conditions.append(
                f"corporation_id = ANY({bind(list(user_hr_corporations))}::text[])"
            )
        conditions.append(f"({' OR '.join(auth_conditions)})")

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    limit_param = bind(filters.limit)
    offset_param = bind(filters.offset)

    rows = await db.fetch(
        f"""
        SELECT {APPLICATION_COLUMNS}
        FROM applications
        {where_clause}
        ORDER BY created_at DESC, id
        LIMIT {limit_param} OFFSET {offset_param}
        """,
        *args,
    )

    logger.info(
        "applications_listed",
        user_id=user_id,
        is_admin=is_admin,
        hr_corporations=len(user_hr_corporations or []),
        count=len(rows),
    )
    return [_to_application(row) for row in rows]


async def get_application(
    application_id: str,
    user_id: str,
    is_admin: bool,
    user_hr_corporations: list[str] | None = None,
    include_activity_log: bool = True,
) -> ApplicationDetail:
    """
    Get one application with its recommendations.

    The activity log is attached only for HR/admin callers; applicants never
    see the internal audit trail of their own application.

    Raises:
        NotFoundError: If the application does not exist
        ForbiddenError: If the caller is not the owner, HR for the corporation, or admin
    """
    application = _to_application(await _fetch_application_row(application_id))

    is_owner = application.user_id == str(to_uuid(user_id, "user_id"))
    has_hr_access = application.corporation_id in (user_hr_corporations or [])

    if not (is_owner or has_hr_access or is_admin):
        logger.warning(
            "application_access_denied", application_id=application_id, user_id=user_id
        )
        raise ForbiddenError(
            "You do not have permission to view this application",
            context={"application_id": application_id},
        )

    recommendation_rows = await db.fetch(
        """
        SELECT id, application_id, user_id, character_id, character_name,
               recommendation_text, sentiment, created_at, updated_at
        FROM application_recommendations
        WHERE application_id = $1
        ORDER BY created_at DESC
        """,
        to_uuid(application_id, "application_id"),
    )
    recommendations = [
        Recommendation.model_validate(record_to_dict(row)) for row in recommendation_rows
    ]

    activity_log = None
    if include_activity_log and (has_hr_access or is_admin):
        activity_log = await get_activity_log(application_id)

    return ApplicationDetail(
        **application.model_dump(),
        recommendations=recommendations,
        recommendation_count=len(recommendations),
        activity_log=activity_log,
    )


async def update_application_status(
    application_id: str,
    status: str,
    user_id: str,
    character_id: str,
    review_notes: str | None = None,
) -> None:
    """
    Set an application's status. Any status may move to any other status.

    reviewed_by/reviewed_at are always set to the caller.

    Raises:
        NotFoundError: If the application does not exist
        ValidationError: If status is empty
        ConflictError: If moving to an open status would give the applicant two open applications
    """
    if not status or not status.strip():
        raise ValidationError("Status must not be empty")

    try:
        async with db.transaction() as conn:
            row = await conn.fetchrow(
                "SELECT status FROM applications WHERE id = $1 FOR UPDATE",
                to_uuid(application_id, "application_id"),
            )
            if not row:
                raise NotFoundError(
                    "Application not found", context={"application_id": application_id}
                )
            previous_status = row["status"]

            await conn.execute(
                """
                UPDATE applications
                SET status = $2, reviewed_by = $3, reviewed_at = NOW(),
                    review_notes = $4, updated_at = NOW()
                WHERE id = $1
                """,
                to_uuid(application_id, "application_id"),
                status,
                to_uuid(user_id, "user_id"),
                review_notes,
            )

            await log_activity(
                conn,
                application_id,
                user_id,
                character_id,
                "status_changed",
                previous_status,
                status,
                {"reviewNotes": review_notes},
            )
    except asyncpg.UniqueViolationError as e:
        raise ConflictError(
            "Applicant already has another pending or under review application "
            "for this corporation",
            context={"application_id": application_id, "status": status},
        ) from e

    logger.info(
        "application_status_changed",
        application_id=application_id,
        previous_status=previous_status,
        new_status=status,
        reviewed_by=user_id,
    )


async def withdraw_application(application_id: str, user_id: str, character_id: str) -> None:
    """
    Withdraw an application. Only the applicant may do this.

    Raises:
        NotFoundError: If the application does not exist
        ForbiddenError: If the caller is not the applicant
    """
    async with db.transaction() as conn:
        row = await conn.fetchrow(
            "SELECT user_id, status FROM applications WHERE id = $1 FOR UPDATE",
            to_uuid(application_id, "application_id"),
        )
        if not row:
            raise NotFoundError(
                "Application not found", context={"application_id": application_id}
            )

        if row["user_id"] != to_uuid(user_id, "user_id"):
            raise ForbiddenError(
                "You can only withdraw your own applications",
                context={"application_id": application_id},
            )

        previous_status = row["status"]

        await conn.execute(
            """
            UPDATE applications
            SET status = $2, updated_at = NOW()
            WHERE id = $1
            """,
            to_uuid(application_id, "application_id"),
            ApplicationStatus.WITHDRAWN.value,
        )

        await log_activity(
            conn,
            application_id,
            user_id,
            character_id,
            "withdrawn",
            previous_status,
            ApplicationStatus.WITHDRAWN.value,
        )

    logger.info("application_withdrawn", application_id=application_id, user_id=user_id)


async def delete_application(application_id: str) -> None:
    """
    Permanently delete an application.

    Recommendations and activity log rows are removed by ON DELETE CASCADE.

    Raises:
        NotFoundError: If the application does not exist
    """
    result = await db.execute(
        "DELETE FROM applications WHERE id = $1",
        to_uuid(application_id, "application_id"),
    )

    # Result looks like "DELETE 1" or "DELETE 0"
    rows_affected = int(result.split()[-1]) if result else 0
    if rows_affected == 0:
        raise NotFoundError("Application not found", context={"application_id": application_id})

    logger.info("application_deleted", application_id=application_id)

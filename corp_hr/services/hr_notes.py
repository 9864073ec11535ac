"""Confidential HR notes about users.

Admin-only. Callers are verified as site admins before reaching this module;
nothing here checks authorization.
"""

from __future__ import annotations

from typing import Any

import asyncpg
from structlog import get_logger

from corp_hr.core.database import db, record_to_dict
from corp_hr.core.errors import NotFoundError
from corp_hr.models.hr import (
    HrNote,
    HrNotePriority,
    HrNoteType,
    NoteFilters,
    NoteUpdate,
)
from corp_hr.utils.ids import to_uuid

logger = get_logger()

NOTE_COLUMNS = """
    id, subject_user_id, subject_character_id, author_id, author_character_id,
    author_character_name, note_text, note_type, priority, metadata,
    created_at, updated_at
"""

# Columns a note update may touch; author attribution is fixed at creation
UPDATABLE_FIELDS = ("note_text", "note_type", "priority", "metadata")


def _to_note(row: asyncpg.Record) -> HrNote:
    return HrNote.model_validate(record_to_dict(row))


async def create_note(
    subject_user_id: str,
    subject_character_id: str | None,
    author_id: str,
    author_character_id: str | None,
    author_character_name: str | None,
    note_text: str,
    note_type: HrNoteType,
    priority: HrNotePriority = HrNotePriority.NORMAL,
    metadata: dict[str, Any] | None = None,
) -> HrNote:
    """Create an HR note about a user."""
    row = await db.fetchrow(
        f"""
        INSERT INTO hr_notes
        (subject_user_id, subject_character_id, author_id, author_character_id,
         author_character_name, note_text, note_type, priority, metadata)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        RETURNING {NOTE_COLUMNS}
        """,
        to_uuid(subject_user_id, "subject_user_id"),
        subject_character_id,
        to_uuid(author_id, "author_id"),
        author_character_id,
        author_character_name,
        note_text,
        HrNoteType(note_type).value,
        HrNotePriority(priority).value,
        metadata,
    )
    note = _to_note(row)

    logger.info(
        "hr_note_created",
        note_id=note.id,
        subject_user_id=subject_user_id,
        note_type=note.note_type,
        priority=note.priority,
    )
    return note


async def list_notes(filters: NoteFilters) -> list[HrNote]:
    """List notes filtered by subject user, type and priority, newest first."""
    conditions: list[str] = []
    args: list[Any] = []

    if filters.subject_user_id:
        args.append(to_uuid(filters.subject_user_id, "subject_user_id"))
        conditions.append(f"subject_user_id = ${len(args)}")
    if filters.note_type:
        args.append(filters.note_type.value)
        conditions.append(f"note_type = ${len(args)}")
    if filters.priority:
        args.append(filters.priority.value)
        conditions.append(f"priority = ${len(args)}")

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    args.extend([filters.limit, filters.offset])

    rows = await db.fetch(
        f"""
        SELECT {NOTE_COLUMNS}
        FROM hr_notes
        {where_clause}
        ORDER BY created_at DESC
        LIMIT ${len(args) - 1} OFFSET ${len(args)}
        """,
        *args,
    )
    return [_to_note(row) for row in rows]


async def get_user_notes(subject_user_id: str) -> list[HrNote]:
    """All notes about a user, newest first."""
    rows = await db.fetch(
        f"""
        SELECT {NOTE_COLUMNS}
        FROM hr_notes
        WHERE subject_user_id = $1
        ORDER BY created_at DESC
        """,
        to_uuid(subject_user_id, "subject_user_id"),
    )
    return [_to_note(row) for row in rows]


async def get_character_notes(subject_character_id: str) -> list[HrNote]:
    """All notes about a specific character, newest first."""
    rows = await db.fetch(
        f"""
        SELECT {NOTE_COLUMNS}
        FROM hr_notes
        WHERE subject_character_id = $1
        ORDER BY created_at DESC
        """,
        subject_character_id,
    )
    return [_to_note(row) for row in rows]


async def get_high_priority_notes(limit: int = 20) -> list[HrNote]:
    """High and critical notes for the admin dashboard."""
    rows = await db.fetch(
        f"""
        SELECT {NOTE_COLUMNS}
        FROM hr_notes
        WHERE priority = ANY($1::text[])
        ORDER BY created_at DESC
        LIMIT $2
        """,
        [HrNotePriority.HIGH.value, HrNotePriority.CRITICAL.value],
        limit,
    )
    return [_to_note(row) for row in rows]


async def get_note(note_id: str) -> HrNote:
    """
    Get a single note.

    Raises:
        NotFoundError: If the note does not exist
    """
    row = await db.fetchrow(
        f"SELECT {NOTE_COLUMNS} FROM hr_notes WHERE id = $1",
        to_uuid(note_id, "note_id"),
    )
    if not row:
        raise NotFoundError("HR note not found", context={"note_id": note_id})
    return _to_note(row)


async def update_note(note_id: str, updates: NoteUpdate) -> None:
    """
    Apply a partial update to a note.

    Only note_text, note_type, priority and metadata can change. Fields not
    set on the update model are left untouched; metadata may be explicitly
    cleared with None.

    Raises:
        NotFoundError: If the note does not exist
    """
    changes = updates.model_dump(exclude_unset=True, mode="json")
    values = {
        field: changes[field]
        for field in UPDATABLE_FIELDS
        if field in changes and (changes[field] is not None or field == "metadata")
    }

    assignments = ["updated_at = NOW()"]
    args: list[Any] = [to_uuid(note_id, "note_id")]
    for field, value in values.items():
        args.append(value)
        assignments.append(f"{field} = ${len(args)}")

    result = await db.execute(
        f"UPDATE hr_notes SET {', '.join(assignments)} WHERE id = $1",
        *args,
    )

    rows_affected = int(result.split()[-1]) if result else 0
    if rows_affected == 0:
        raise NotFoundError("HR note not found", context={"note_id": note_id})

    logger.info("hr_note_updated", note_id=note_id, fields=sorted(values))


async def delete_note(note_id: str) -> None:
    """
    Delete a note.

    Raises:
        NotFoundError: If the note does not exist
    """
    result = await db.execute(
        "DELETE FROM hr_notes WHERE id = $1",
        to_uuid(note_id, "note_id"),
    )

    rows_affected = int(result.split()[-1]) if result else 0
    if rows_affected == 0:
        raise NotFoundError("HR note not found", context={"note_id": note_id})

    logger.info("hr_note_deleted", note_id=note_id)

"""HR note endpoints. Every route here is admin only."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from structlog import get_logger

from corp_hr.api.deps import Caller, get_caller, require_admin
from corp_hr.models.hr import HrNote, NoteCreate, NoteFilters, NoteUpdate
from corp_hr.services.hr import hr

logger = get_logger()


async def get_admin_caller(caller: Caller = Depends(get_caller)) -> Caller:
    """Resolve the caller and require site admin."""
    require_admin(caller)
    return caller


router = APIRouter(prefix="/hr/notes", tags=["notes"])


@router.post("", response_model=HrNote, status_code=status.HTTP_201_CREATED)
async def create_note(body: NoteCreate, caller: Caller = Depends(get_admin_caller)) -> HrNote:
    """Create a note authored by the calling admin."""
    return await hr.create_note(
        body.subject_user_id,
        body.subject_character_id,
        caller.user_id,
        caller.character_id,
        body.author_character_name,
        body.note_text,
        body.note_type,
        body.priority,
        body.metadata,
    )


@router.get("", response_model=list[HrNote])
async def list_notes(
    filters: Annotated[NoteFilters, Query()],
    caller: Caller = Depends(get_admin_caller),
) -> list[HrNote]:
    """List notes filtered by subject user, type and priority."""
    return await hr.list_notes(filters)


@router.get("/high-priority", response_model=list[HrNote])
async def get_high_priority_notes(
    limit: int = Query(default=20, ge=1, le=100),
    caller: Caller = Depends(get_admin_caller),
) -> list[HrNote]:
    """High and critical priority notes, newest first."""
    return await hr.get_high_priority_notes(limit)


@router.get("/users/{subject_user_id}", response_model=list[HrNote])
async def get_user_notes(
    subject_user_id: str, caller: Caller = Depends(get_admin_caller)
) -> list[HrNote]:
    """All notes about one user."""
    return await hr.get_user_notes(subject_user_id)


@router.get("/characters/{subject_character_id}", response_model=list[HrNote])
async def get_character_notes(
    subject_character_id: str, caller: Caller = Depends(get_admin_caller)
) -> list[HrNote]:
    """All notes about one character."""
    return await hr.get_character_notes(subject_character_id)


@router.get("/{note_id}", response_model=HrNote)
async def get_note(note_id: str, caller: Caller = Depends(get_admin_caller)) -> HrNote:
    return await hr.get_note(note_id)


@router.patch("/{note_id}")
async def update_note(
    note_id: str, body: NoteUpdate, caller: Caller = Depends(get_admin_caller)
) -> dict[str, str]:
    """Update text, type, priority or metadata. Author fields never change."""
    await hr.update_note(note_id, body)
    return {"status": "updated"}


@router.delete("/{note_id}")
async def delete_note(note_id: str, caller: Caller = Depends(get_admin_caller)) -> dict[str, str]:
    logger.info("admin_deleting_note", note_id=note_id, user_id=caller.user_id)
    await hr.delete_note(note_id)
    return {"status": "deleted"}

"""Pydantic models for applications, recommendations, notes and HR roles."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

# ============================================
# Enumerations
# ============================================


class ApplicationStatus(StrEnum):
    """Conventional application statuses. The column itself accepts any string."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


OPEN_APPLICATION_STATUSES: tuple[str, ...] = (
    ApplicationStatus.PENDING.value,
    ApplicationStatus.UNDER_REVIEW.value,
)


class RecommendationSentiment(StrEnum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class HrNoteType(StrEnum):
    GENERAL = "general"
    WARNING = "warning"
    POSITIVE = "positive"
    INCIDENT = "incident"
    BACKGROUND_CHECK = "background_check"


class HrNotePriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class HrRoleType(StrEnum):
    HR_VIEWER = "hr_viewer"
    HR_REVIEWER = "hr_reviewer"
    HR_ADMIN = "hr_admin"


# Higher value = more permissions
ROLE_HIERARCHY: dict[HrRoleType, int] = {
    HrRoleType.HR_VIEWER: 1,
    HrRoleType.HR_REVIEWER: 2,
    HrRoleType.HR_ADMIN: 3,
}


# ============================================
# Domain Models
# ============================================


class Application(BaseModel):
    """A request by (user_id, character_id) to join corporation_id."""

    id: str
    corporation_id: str
    user_id: str
    character_id: str
    character_name: str
    application_text: str
    status: str  # Conventionally an ApplicationStatus value
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class Recommendation(BaseModel):
    """Peer endorsement attached to one application."""

    id: str
    application_id: str
    user_id: str
    character_id: str
    character_name: str
    recommendation_text: str
    sentiment: RecommendationSentiment
    created_at: datetime
    updated_at: datetime


class ActivityLogEntry(BaseModel):
    """Immutable record of one state-changing action on an application."""

    id: str
    application_id: str
    user_id: str
    character_id: str
    action: str
    previous_value: str | None = None
    new_value: str | None = None
    metadata: dict[str, Any] | None = None
    timestamp: datetime


class ApplicationDetail(Application):
    """Application with recommendations, plus the audit trail for HR/admin callers."""

    recommendations: list[Recommendation]
    recommendation_count: int
    activity_log: list[ActivityLogEntry] | None = None


class HrNote(BaseModel):
    """Confidential admin annotation about a subject user."""

    id: str
    subject_user_id: str
    subject_character_id: str | None = None
    author_id: str
    author_character_id: str | None = None
    author_character_name: str | None = None
    note_text: str
    note_type: HrNoteType
    priority: HrNotePriority
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class HrRole(BaseModel):
    """Grant of an HR authorization level to a user for one corporation."""

    id: str
    corporation_id: str
    user_id: str
    character_id: str
    character_name: str
    role: HrRoleType
    granted_by: str
    granted_at: datetime
    expires_at: datetime | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================
# Filters
# ============================================


class ApplicationFilters(BaseModel):
    corporation_id: str | None = None
    user_id: str | None = None
    status: str | None = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class NoteFilters(BaseModel):
    subject_user_id: str | None = None
    note_type: HrNoteType | None = None
    priority: HrNotePriority | None = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class RoleFilters(BaseModel):
    corporation_id: str | None = None
    user_id: str | None = None
    is_active: bool | None = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


# ============================================
# Input Models
# ============================================


class ApplicationCreate(BaseModel):
    """Body for submitting an application."""

    corporation_id: str
    character_name: str = Field(min_length=1, max_length=255)
    application_text: str = Field(min_length=1)


class ApplicationStatusUpdate(BaseModel):
    """Body for a status change. Any non-empty status string is accepted."""

    status: str = Field(min_length=1, max_length=50)
    review_notes: str | None = None


class RecommendationCreate(BaseModel):
    character_name: str = Field(min_length=1, max_length=255)
    recommendation_text: str = Field(min_length=1)
    sentiment: RecommendationSentiment


class RecommendationUpdate(BaseModel):
    recommendation_text: str = Field(min_length=1)
    sentiment: RecommendationSentiment


class NoteCreate(BaseModel):
    subject_user_id: str
    subject_character_id: str | None = None
    author_character_name: str | None = None
    note_text: str = Field(min_length=1)
    note_type: HrNoteType
    priority: HrNotePriority = HrNotePriority.NORMAL
    metadata: dict[str, Any] | None = None


class NoteUpdate(BaseModel):
    """Partial update. Author attribution fields are not part of this model."""

    note_text: str | None = Field(default=None, min_length=1)
    note_type: HrNoteType | None = None
    priority: HrNotePriority | None = None
    metadata: dict[str, Any] | None = None


class RoleGrant(BaseModel):
    corporation_id: str
    user_id: str
    character_id: str
    character_name: str = Field(min_length=1, max_length=255)
    role: HrRoleType
    expires_at: datetime | None = None


# ============================================
# Response Models
# ============================================


class PermissionCheckResponse(BaseModel):
    user_id: str
    corporation_id: str
    required_role: HrRoleType
    has_permission: bool


class HrCorporationsResponse(BaseModel):
    user_id: str
    corporation_ids: list[str]

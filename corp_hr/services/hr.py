"""
HR orchestrator: the single entry point for every HR operation.

Callers arrive with identity already resolved (user id, optional character
id, admin flag). The orchestrator dispatches to the services, resolves the
caller's HR corporations for application reads, and owns the role cache.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from corp_hr.clients.membership import MembershipOracle, membership_client
from corp_hr.core.cache import RoleCache, role_cache_key
from corp_hr.core.config import settings
from corp_hr.core.errors import ForbiddenError, service_boundary
from corp_hr.models.hr import (
    Application,
    ApplicationDetail,
    ApplicationFilters,
    HrNote,
    HrNotePriority,
    HrNoteType,
    HrRole,
    HrRoleType,
    NoteFilters,
    NoteUpdate,
    Recommendation,
    RecommendationSentiment,
    RoleFilters,
)
from corp_hr.services import applications, hr_notes, hr_roles, recommendations


class HrOrchestrator:
    """Facade over the application, recommendation, note and role services."""

    def __init__(self, oracle: MembershipOracle, cache: RoleCache | None = None) -> None:
        self.oracle = oracle
        self.role_cache = (
            cache if cache is not None else RoleCache(ttl_seconds=settings.role_cache_ttl_seconds)
        )

    # ============================================
    # Applications
    # ============================================

    @service_boundary
    async def submit_application(
        self,
        user_id: str,
        character_id: str,
        character_name: str,
        corporation_id: str,
        application_text: str,
    ) -> Application:
        return await applications.submit_application(
            user_id, character_id, character_name, corporation_id, application_text
        )

    @service_boundary
    async def list_applications(
        self, filters: ApplicationFilters, user_id: str, is_admin: bool
    ) -> list[Application]:
        hr_corporations = [] if is_admin else await hr_roles.get_user_hr_corporations(user_id)
        return await applications.list_applications(filters, user_id, is_admin, hr_corporations)

    @service_boundary
    async def get_application(
        self, application_id: str, user_id: str, is_admin: bool
    ) -> ApplicationDetail:
        hr_corporations = [] if is_admin else await hr_roles.get_user_hr_corporations(user_id)
        return await applications.get_application(
            application_id, user_id, is_admin, hr_corporations
        )

    @service_boundary
    async def ensure_can_review(self, application_id: str, user_id: str, is_admin: bool) -> None:
        """
        Require hr_reviewer (or higher) in the application's corporation, unless admin.

        Raises:
            NotFoundError: If the application does not exist
            ForbiddenError: If the caller may not review it
        """
        if is_admin:
            return
        corporation_id = await applications.get_application_corporation(application_id)
        if not await hr_roles.check_permission(user_id, corporation_id, HrRoleType.HR_REVIEWER):
            raise ForbiddenError(
                "Reviewing applications requires the hr_reviewer role",
                context={"application_id": application_id, "corporation_id": corporation_id},
            )

    @service_boundary
    async def update_application_status(
        self,
        application_id: str,
        status: str,
        user_id: str,
        character_id: str,
        review_notes: str | None = None,
    ) -> None:
        await applications.update_application_status(
            application_id, status, user_id, character_id, review_notes
        )

    @service_boundary
    async def withdraw_application(
        self, application_id: str, user_id: str, character_id: str
    ) -> None:
        await applications.withdraw_application(application_id, user_id, character_id)

    @service_boundary
    async def delete_application(self, application_id: str) -> None:
        await applications.delete_application(application_id)

    # ============================================
    # Recommendations
    # ============================================

    @service_boundary
    async def add_recommendation(
        self,
        application_id: str,
        user_id: str,
        character_id: str,
        character_name: str,
        recommendation_text: str,
        sentiment: RecommendationSentiment,
    ) -> Recommendation:
        return await recommendations.add_recommendation(
            application_id, user_id, character_id, character_name, recommendation_text, sentiment
        )

    @service_boundary
    async def get_recommendation(self, recommendation_id: str) -> Recommendation:
        return await recommendations.get_recommendation(recommendation_id)

    @service_boundary
    async def update_recommendation(
        self,
        recommendation_id: str,
        user_id: str,
        character_id: str,
        recommendation_text: str,
        sentiment: RecommendationSentiment,
        is_admin: bool,
    ) -> None:
        await recommendations.update_recommendation(
            recommendation_id, user_id, character_id, recommendation_text, sentiment, is_admin
        )

    @service_boundary
    async def delete_recommendation(
        self, recommendation_id: str, user_id: str, character_id: str, is_admin: bool
    ) -> None:
        await recommendations.delete_recommendation(
            recommendation_id, user_id, character_id, is_admin
        )

    # ============================================
    # HR notes
    # ============================================

    @service_boundary
    async def create_note(
        self,
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
        return await hr_notes.create_note(
            subject_user_id,
            subject_character_id,
            author_id,
            author_character_id,
            author_character_name,
            note_text,
            note_type,
            priority,
            metadata,
        )

    @service_boundary
    async def list_notes(self, filters: NoteFilters) -> list[HrNote]:
        return await hr_notes.list_notes(filters)

    @service_boundary
    async def get_user_notes(self, subject_user_id: str) -> list[HrNote]:
        return await hr_notes.get_user_notes(subject_user_id)

    @service_boundary
    async def get_character_notes(self, subject_character_id: str) -> list[HrNote]:
        return await hr_notes.get_character_notes(subject_character_id)

    @service_boundary
    async def get_high_priority_notes(self, limit: int = 20) -> list[HrNote]:
        return await hr_notes.get_high_priority_notes(limit)

    @service_boundary
    async def get_note(self, note_id: str) -> HrNote:
        return await hr_notes.get_note(note_id)

    @service_boundary
    async def update_note(self, note_id: str, updates: NoteUpdate) -> None:
        await hr_notes.update_note(note_id, updates)

    @service_boundary
    async def delete_note(self, note_id: str) -> None:
        await hr_notes.delete_note(note_id)

    # ============================================
    # HR roles
    # ============================================

    @service_boundary
    async def grant_role(
        self,
        corporation_id: str,
        user_id: str,
        character_id: str,
        character_name: str,
        role: HrRoleType,
        granted_by: str,
        expires_at: datetime | None = None,
    ) -> HrRole:
        """Grant a role and drop the corporation's cached role listings."""
        hr_role = await hr_roles.grant_role(
            corporation_id,
            user_id,
            character_id,
            character_name,
            role,
            granted_by,
            self.oracle,
            expires_at,
        )
        self.role_cache.invalidate_corporation(corporation_id)
        return hr_role

    @service_boundary
    async def revoke_role(self, role_id: str) -> None:
        """Revoke a role and drop the corporation's cached role listings."""
        role = await hr_roles.revoke_role(role_id)
        self.role_cache.invalidate_corporation(role.corporation_id)

    @service_boundary
    async def get_role(self, role_id: str) -> HrRole:
        return await hr_roles.get_role(role_id)

    @service_boundary
    async def get_user_roles(
        self, user_id: str, corporation_id: str | None = None
    ) -> list[HrRole]:
        return await hr_roles.get_user_roles(user_id, corporation_id)

    @service_boundary
    async def get_corporation_roles(
        self, corporation_id: str, active_only: bool = True
    ) -> list[HrRole]:
        """Cached for role_cache_ttl_seconds; invalidated by grant/revoke."""
        key = role_cache_key(corporation_id, active_only)
        return await self.role_cache.get_or_compute(
            key, lambda: hr_roles.get_corporation_roles(corporation_id, active_only)
        )

    @service_boundary
    async def list_roles(self, filters: RoleFilters) -> list[HrRole]:
        return await hr_roles.list_roles(filters)

    @service_boundary
    async def check_permission(
        self, user_id: str, corporation_id: str, required_role: HrRoleType
    ) -> bool:
        return await hr_roles.check_permission(user_id, corporation_id, required_role)

    @service_boundary
    async def get_user_hr_corporations(self, user_id: str) -> list[str]:
        return await hr_roles.get_user_hr_corporations(user_id)

    @service_boundary
    async def ensure_can_manage_roles(
        self,
        corporation_id: str,
        user_id: str,
        character_ids: list[str],
        is_admin: bool,
    ) -> None:
        await hr_roles.ensure_can_manage_roles(
            corporation_id, user_id, character_ids, is_admin, self.oracle
        )

    @service_boundary
    async def deactivate_expired_roles(self) -> int:
        """
        Flag expired roles inactive and drop cached listings for the affected corporations.

        Returns:
            Number of corporations touched
        """
        corporation_ids = await hr_roles.deactivate_expired_roles()
        for corporation_id in corporation_ids:
            self.role_cache.invalidate_corporation(corporation_id)
        return len(corporation_ids)


# Module-level singleton used by the API layer and scheduler
hr = HrOrchestrator(oracle=membership_client)

"""Tests for the HR orchestrator (corp_hr/services/hr.py)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import asyncpg
import pytest

from corp_hr.core.cache import RoleCache, role_cache_key
from corp_hr.core.database import record_to_dict
from corp_hr.core.errors import DatabaseError, ForbiddenError, NotFoundError
from corp_hr.models.hr import ApplicationFilters, HrRole, HrRoleType
from corp_hr.services.hr import HrOrchestrator
from tests.fixtures.factories import CORPORATION_ID, FakeMembershipOracle, make_role_row


def make_role(**overrides) -> HrRole:
    return HrRole.model_validate(record_to_dict(make_role_row(**overrides)))


@pytest.fixture
def orchestrator():
    return HrOrchestrator(oracle=FakeMembershipOracle(), cache=RoleCache())


class TestRoleCacheInvalidation:
    """Grant and revoke drop cached listings synchronously."""

    @pytest.mark.asyncio
    async def test_grant_invalidates_both_keys(self, orchestrator):
        orchestrator.role_cache.set(role_cache_key(CORPORATION_ID, True), [])
        orchestrator.role_cache.set(role_cache_key(CORPORATION_ID, False), [])

        with patch("corp_hr.services.hr.hr_roles.grant_role", new_callable=AsyncMock) as mock_grant:
            mock_grant.return_value = make_role()

            await orchestrator.grant_role(
                CORPORATION_ID, str(uuid4()), "90000001", "Test Pilot", "hr_viewer", str(uuid4())
            )

        assert len(orchestrator.role_cache) == 0
        # The orchestrator's oracle is the one handed to the service
        assert mock_grant.call_args[0][6] is orchestrator.oracle

    @pytest.mark.asyncio
    async def test_failed_grant_leaves_cache_alone(self, orchestrator):
        """Nothing written, nothing invalidated."""
        orchestrator.role_cache.set(role_cache_key(CORPORATION_ID, True), ["cached"])

        with patch(
            "corp_hr.services.hr.hr_roles.grant_role",
            new_callable=AsyncMock,
            side_effect=asyncpg.PostgresError("boom"),
        ):
            with pytest.raises(DatabaseError):
                await orchestrator.grant_role(
                    CORPORATION_ID, str(uuid4()), "90000001", "Test Pilot", "hr_viewer", str(uuid4())
                )

        assert orchestrator.role_cache.get(role_cache_key(CORPORATION_ID, True)) == ["cached"]

    @pytest.mark.asyncio
    async def test_revoke_invalidates_role_corporation(self, orchestrator):
        orchestrator.role_cache.set(role_cache_key("98000077", True), [])
        orchestrator.role_cache.set(role_cache_key(CORPORATION_ID, True), ["untouched"])

        with patch("corp_hr.services.hr.hr_roles.revoke_role", new_callable=AsyncMock) as mock_revoke:
            mock_revoke.return_value = make_role(corporation_id="98000077")

            await orchestrator.revoke_role(str(uuid4()))

        assert role_cache_key("98000077", True) not in orchestrator.role_cache
        assert orchestrator.role_cache.get(role_cache_key(CORPORATION_ID, True)) == ["untouched"]

    @pytest.mark.asyncio
    async def test_revoke_missing_role_raises_not_found(self, orchestrator):
        with patch(
            "corp_hr.services.hr.hr_roles.revoke_role",
            new_callable=AsyncMock,
            side_effect=NotFoundError("HR role not found"),
        ):
            with pytest.raises(NotFoundError):
                await orchestrator.revoke_role(str(uuid4()))

    @pytest.mark.asyncio
    async def test_expired_sweep_invalidates_touched_corporations(self, orchestrator):
        orchestrator.role_cache.set(role_cache_key("98000001", True), [])
        orchestrator.role_cache.set(role_cache_key("98000002", False), [])
        orchestrator.role_cache.set(role_cache_key("98000003", True), ["kept"])

        with patch(
            "corp_hr.services.hr.hr_roles.deactivate_expired_roles",
            new_callable=AsyncMock,
            return_value=["98000001", "98000002"],
        ):
            touched = await orchestrator.deactivate_expired_roles()

        assert touched == 2
        assert len(orchestrator.role_cache) == 1


class TestCorporationRolesCache:
    """get_corporation_roles reads through the cache."""

    @pytest.mark.asyncio
    async def test_second_read_served_from_cache(self, orchestrator):
        roles = [make_role()]

        with patch(
            "corp_hr.services.hr.hr_roles.get_corporation_roles",
            new_callable=AsyncMock,
            return_value=roles,
        ) as mock_query:
            first = await orchestrator.get_corporation_roles(CORPORATION_ID)
            second = await orchestrator.get_corporation_roles(CORPORATION_ID)

        assert first == second == roles
        mock_query.assert_awaited_once_with(CORPORATION_ID, True)

    @pytest.mark.asyncio
    async def test_active_only_flag_is_part_of_the_key(self, orchestrator):
        with patch(
            "corp_hr.services.hr.hr_roles.get_corporation_roles",
            new_callable=AsyncMock,
            return_value=[],
        ) as mock_query:
            await orchestrator.get_corporation_roles(CORPORATION_ID, active_only=True)
            await orchestrator.get_corporation_roles(CORPORATION_ID, active_only=False)

        assert mock_query.await_count == 2


class TestApplicationScoping:
    """Application reads resolve HR corporations first."""

    @pytest.mark.asyncio
    async def test_non_admin_list_passes_hr_corporations(self, orchestrator):
        user_id = str(uuid4())
        filters = ApplicationFilters()

        with (
            patch(
                "corp_hr.services.hr.hr_roles.get_user_hr_corporations",
                new_callable=AsyncMock,
                return_value=["98000001"],
            ),
            patch(
                "corp_hr.services.hr.applications.list_applications",
                new_callable=AsyncMock,
                return_value=[],
            ) as mock_list,
        ):
            await orchestrator.list_applications(filters, user_id, False)

        mock_list.assert_awaited_once_with(filters, user_id, False, ["98000001"])

    @pytest.mark.asyncio
    async def test_admin_skips_hr_lookup(self, orchestrator):
        with (
            patch(
                "corp_hr.services.hr.hr_roles.get_user_hr_corporations", new_callable=AsyncMock
            ) as mock_lookup,
            patch(
                "corp_hr.services.hr.applications.get_application", new_callable=AsyncMock
            ) as mock_get,
        ):
            await orchestrator.get_application(str(uuid4()), str(uuid4()), True)

        mock_lookup.assert_not_called()
        assert mock_get.call_args[0][3] == []


class TestReviewAuthorization:
    """Status changes need hr_reviewer in the application's corporation."""

    @pytest.mark.asyncio
    async def test_admin_skips_role_lookup(self, orchestrator):
        with patch(
            "corp_hr.services.hr.applications.get_application_corporation", new_callable=AsyncMock
        ) as mock_corp:
            await orchestrator.ensure_can_review(str(uuid4()), str(uuid4()), is_admin=True)

        mock_corp.assert_not_called()

    @pytest.mark.asyncio
    async def test_viewer_is_forbidden(self, orchestrator):
        with (
            patch(
                "corp_hr.services.hr.applications.get_application_corporation",
                new_callable=AsyncMock,
                return_value=CORPORATION_ID,
            ),
            patch(
                "corp_hr.services.hr.hr_roles.check_permission",
                new_callable=AsyncMock,
                return_value=False,
            ) as mock_check,
        ):
            with pytest.raises(ForbiddenError, match="hr_reviewer"):
                await orchestrator.ensure_can_review(str(uuid4()), str(uuid4()), is_admin=False)

        assert mock_check.call_args[0][1:] == (CORPORATION_ID, HrRoleType.HR_REVIEWER)

    @pytest.mark.asyncio
    async def test_missing_application_is_not_found(self, orchestrator):
        with patch(
            "corp_hr.services.hr.applications.get_application_corporation",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Application not found"),
        ):
            with pytest.raises(NotFoundError):
                await orchestrator.ensure_can_review(str(uuid4()), str(uuid4()), is_admin=False)

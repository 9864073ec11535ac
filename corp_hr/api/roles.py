"""HR role endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from structlog import get_logger

from corp_hr.api.deps import Caller, get_caller, require_admin
from corp_hr.models.hr import (
    HrCorporationsResponse,
    HrRole,
    HrRoleType,
    PermissionCheckResponse,
    RoleFilters,
    RoleGrant,
)
from corp_hr.services.hr import hr

logger = get_logger()
router = APIRouter(prefix="/hr/roles", tags=["roles"])


async def ensure_manager(caller: Caller, corporation_id: str) -> None:
    """Site admin or CEO of the corporation (via the caller's linked characters)."""
    await hr.ensure_can_manage_roles(
        corporation_id, caller.user_id, caller.character_ids, caller.is_admin
    )


@router.post("", response_model=HrRole, status_code=status.HTTP_201_CREATED)
async def grant_role(body: RoleGrant, caller: Caller = Depends(get_caller)) -> HrRole:
    """
    Grant an HR role, superseding the user's current role in the corporation.

    Returns 422 if the character is not a member of the corporation.
    """
    await ensure_manager(caller, body.corporation_id)
    return await hr.grant_role(
        body.corporation_id,
        body.user_id,
        body.character_id,
        body.character_name,
        body.role,
        caller.user_id,
        body.expires_at,
    )


@router.get("", response_model=list[HrRole])
async def list_roles(
    filters: Annotated[RoleFilters, Query()],
    caller: Caller = Depends(get_caller),
) -> list[HrRole]:
    """List roles. Admins may list everything; CEOs only their corporation."""
    if filters.corporation_id:
        await ensure_manager(caller, filters.corporation_id)
    else:
        require_admin(caller)
    return await hr.list_roles(filters)


@router.get("/me/corporations", response_model=HrCorporationsResponse)
async def get_my_hr_corporations(caller: Caller = Depends(get_caller)) -> HrCorporationsResponse:
    """Corporations where the caller currently holds an HR role."""
    corporation_ids = await hr.get_user_hr_corporations(caller.user_id)
    return HrCorporationsResponse(user_id=caller.user_id, corporation_ids=corporation_ids)


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    corporation_id: str,
    required_role: HrRoleType,
    user_id: str | None = None,
    caller: Caller = Depends(get_caller),
) -> PermissionCheckResponse:
    """
    Check whether a user holds at least required_role for a corporation.

    Defaults to the caller; checking someone else requires admin.
    """
    subject = user_id or caller.user_id
    if subject != caller.user_id:
        require_admin(caller)

    has_permission = await hr.check_permission(subject, corporation_id, required_role)
    return PermissionCheckResponse(
        user_id=subject,
        corporation_id=corporation_id,
        required_role=required_role,
        has_permission=has_permission,
    )


@router.get("/corporations/{corporation_id}", response_model=list[HrRole])
async def get_corporation_roles(
    corporation_id: str,
    active_only: bool = True,
    caller: Caller = Depends(get_caller),
) -> list[HrRole]:
    """Roles for a corporation. Visible to its HR staff and managers."""
    if not await hr.check_permission(caller.user_id, corporation_id, HrRoleType.HR_VIEWER):
        await ensure_manager(caller, corporation_id)
    return await hr.get_corporation_roles(corporation_id, active_only)


@router.get("/users/{user_id}", response_model=list[HrRole])
async def get_user_roles(
    user_id: str,
    corporation_id: str | None = None,
    caller: Caller = Depends(get_caller),
) -> list[HrRole]:
    """Active roles held by a user. Self or admin."""
    if user_id.lower() != caller.user_id:
        require_admin(caller)
    return await hr.get_user_roles(user_id, corporation_id)


@router.get("/{role_id}", response_model=HrRole)
async def get_role(role_id: str, caller: Caller = Depends(get_caller)) -> HrRole:
    """Get a role. Visible to its holder and to the corporation's managers."""
    role = await hr.get_role(role_id)
    if role.user_id != caller.user_id:
        await ensure_manager(caller, role.corporation_id)
    return role


@router.delete("/{role_id}")
async def revoke_role(role_id: str, caller: Caller = Depends(get_caller)) -> dict[str, str]:
    """Revoke a role. Site admin or corporation CEO only."""
    role = await hr.get_role(role_id)
    await ensure_manager(caller, role.corporation_id)

    logger.info("role_revoke_requested", role_id=role_id, revoked_by=caller.user_id)
    await hr.revoke_role(role_id)
    return {"status": "revoked"}

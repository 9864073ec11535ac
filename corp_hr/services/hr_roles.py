"""
HR role service: the authorization core.

Roles are scoped per (corporation, user). Granting supersedes any active row
for the pair instead of deleting it, so the table doubles as role history.
Expiry is lazy: a row whose expires_at is in the past counts as inactive for
every read here even while is_active is still true. The periodic sweep in
deactivate_expired_roles only tidies the flag.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import aiohttp
import asyncpg
from structlog import get_logger

from corp_hr.clients.membership import MembershipOracle
from corp_hr.core.database import db, record_to_dict
from corp_hr.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from corp_hr.models.hr import ROLE_HIERARCHY, HrRole, HrRoleType, RoleFilters
from corp_hr.utils.ids import to_uuid

logger = get_logger()

ROLE_COLUMNS = """
    id, corporation_id, user_id, character_id, character_name, role,
    granted_by, granted_at, expires_at, is_active, created_at, updated_at
"""

NOT_EXPIRED = "(expires_at IS NULL OR expires_at > NOW())"


def _to_role(row: asyncpg.Record) -> HrRole:
    return HrRole.model_validate(record_to_dict(row))


def _is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    if expires_at is None:
        return False
    return expires_at < (now or datetime.now(UTC))


async def grant_role(
    corporation_id: str,
    user_id: str,
    character_id: str,
    character_name: str,
    role: HrRoleType,
    granted_by: str,
    oracle: MembershipOracle,
    expires_at: datetime | None = None,
) -> HrRole:
    """
    Grant an HR role, superseding any active role for the same user and corporation.

    The character must be a current member of the corporation according to
    the membership oracle. Oracle failures propagate and nothing is written.

    Args:
        corporation_id: Corporation the role applies to
        user_id: Grantee user UUID
        character_id: Grantee character, checked against the member list
        character_name: Character name snapshot
        role: Role level to grant
        granted_by: Granting user UUID
        oracle: Membership source
        expires_at: Optional expiry

    Returns:
        The new active role

    Raises:
        ValidationError: If the character is not a member of the corporation
        ConflictError: If a concurrent grant for the same pair won the race
    """
    role = HrRoleType(role)

    members = await oracle.get_members(corporation_id)
    member_ids = {str(member.get("characterId")) for member in members}
    if str(character_id) not in member_ids:
        logger.warning(
            "role_grant_rejected_not_member",
            corporation_id=corporation_id,
            character_id=character_id,
        )
        raise ValidationError(
            f"Character {character_id} is not a member of corporation {corporation_id}",
            context={"corporation_id": corporation_id, "character_id": character_id},
        )

    try:
        async with db.transaction() as conn:
            superseded = await conn.fetchval(
                """
                UPDATE hr_roles
                SET is_active = false, updated_at = NOW()
                WHERE corporation_id = $1 AND user_id = $2 AND is_active = true
                RETURNING id
                """,
                corporation_id,
                to_uuid(user_id, "user_id"),
            )

            row = await conn.fetchrow(
                f"""
                INSERT INTO hr_roles
                (corporation_id, user_id, character_id, character_name, role,
                 granted_by, expires_at, is_active)
                VALUES ($1, $2, $3, $4, $5, $6, $7, true)
                RETURNING {ROLE_COLUMNS}
                """,
                corporation_id,
                to_uuid(user_id, "user_id"),
                character_id,
                character_name,
                role.value,
                to_uuid(granted_by, "granted_by"),
                expires_at,
            )
    except asyncpg.UniqueViolationError as e:
        raise ConflictError(
            "An active role for this user and corporation was granted concurrently",
            context={"corporation_id": corporation_id, "user_id": user_id},
        ) from e

    hr_role = _to_role(row)

    logger.info(
        "hr_role_granted",
        role_id=hr_role.id,
        corporation_id=corporation_id,
        user_id=user_id,
        role=role.value,
        granted_by=granted_by,
        superseded_role_id=str(superseded) if superseded else None,
    )
    return hr_role


async def get_role(role_id: str) -> HrRole:
    """
    Get a role by id, active or not.

    Raises:
        NotFoundError: If the role does not exist
    """
    row = await db.fetchrow(
        f"SELECT {ROLE_COLUMNS} FROM hr_roles WHERE id = $1",
        to_uuid(role_id, "role_id"),
    )
    if not row:
        raise NotFoundError("HR role not found", context={"role_id": role_id})
    return _to_role(row)


async def revoke_role(role_id: str) -> HrRole:
    """
    Deactivate a role.

    Returns:
        The role as it was before revocation, so callers know its corporation

    Raises:
        NotFoundError: If the role does not exist
    """
    role = await get_role(role_id)

    await db.execute(
        "UPDATE hr_roles SET is_active = false, updated_at = NOW() WHERE id = $1",
        to_uuid(role_id, "role_id"),
    )

    logger.info(
        "hr_role_revoked",
        role_id=role_id,
        corporation_id=role.corporation_id,
        user_id=role.user_id,
    )
    return role


async def get_user_roles(user_id: str, corporation_id: str | None = None) -> list[HrRole]:
    """Active, non-expired roles held by a user, optionally for one corporation."""
    conditions = ["user_id = $1", "is_active = true", NOT_EXPIRED]
    args: list[Any] = [to_uuid(user_id, "user_id")]

    if corporation_id:
        args.append(corporation_id)
        conditions.append(f"corporation_id = ${len(args)}")

    rows = await db.fetch(
        f"""
        SELECT {ROLE_COLUMNS}
        FROM hr_roles
        WHERE {' AND '.join(conditions)}
        ORDER BY granted_at DESC
        """,
        *args,
    )
    return [_to_role(row) for row in rows]


async def get_corporation_roles(corporation_id: str, active_only: bool = True) -> list[HrRole]:
    """
    All roles for a corporation, newest grant first.

    Uncached; HrOrchestrator.get_corporation_roles puts the role cache in
    front of this query.
    """
    conditions = ["corporation_id = $1"]
    if active_only:
        conditions.append("is_active = true")

    rows = await db.fetch(
        f"""
        SELECT {ROLE_COLUMNS}
        FROM hr_roles
        WHERE {' AND '.join(conditions)}
        ORDER BY granted_at DESC
        """,
        corporation_id,
    )
    return [_to_role(row) for row in rows]


async def list_roles(filters: RoleFilters) -> list[HrRole]:
    """List roles by corporation, user and active flag, newest grant first."""
    conditions: list[str] = []
    args: list[Any] = []

    if filters.corporation_id:
        args.append(filters.corporation_id)
        conditions.append(f"corporation_id = ${len(args)}")
    if filters.user_id:
        args.append(to_uuid(filters.user_id, "user_id"))
        conditions.append(f"user_id = ${len(args)}")
    if filters.is_active is not None:
        args.append(filters.is_active)
        conditions.append(f"is_active = ${len(args)}")

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    args.extend([filters.limit, filters.offset])

    rows = await db.fetch(
        f"""
        SELECT {ROLE_COLUMNS}
        FROM hr_roles
        {where_clause}
        ORDER BY granted_at DESC
        LIMIT ${len(args) - 1} OFFSET ${len(args)}
        """,
        *args,
    )
    return [_to_role(row) for row in rows]


async def check_permission(user_id: str, corporation_id: str, required_role: HrRoleType) -> bool:
    """
    Check whether the user holds at least required_role for the corporation.

    Returns False when there is no active role or the active role has expired.
    """
    row = await db.fetchrow(
        """
        SELECT role, expires_at
        FROM hr_roles
        WHERE user_id = $1 AND corporation_id = $2 AND is_active = true
        """,
        to_uuid(user_id, "user_id"),
        corporation_id,
    )

    if not row:
        return False

    if _is_expired(row["expires_at"]):
        logger.debug(
            "hr_role_expired", user_id=user_id, corporation_id=corporation_id
        )
        return False

    return ROLE_HIERARCHY[HrRoleType(row["role"])] >= ROLE_HIERARCHY[HrRoleType(required_role)]


async def get_user_hr_corporations(user_id: str) -> list[str]:
    """Corporations where the user holds any active, non-expired role."""
    rows = await db.fetch(
        f"""
        SELECT DISTINCT corporation_id
        FROM hr_roles
        WHERE user_id = $1 AND is_active = true AND {NOT_EXPIRED}
        ORDER BY corporation_id
        """,
        to_uuid(user_id, "user_id"),
    )
    return [row["corporation_id"] for row in rows]


async def find_expired_roles() -> list[HrRole]:
    """Roles still flagged active whose expiry has passed."""
    rows = await db.fetch(
        f"""
        SELECT {ROLE_COLUMNS}
        FROM hr_roles
        WHERE is_active = true AND expires_at IS NOT NULL AND expires_at <= NOW()
        ORDER BY expires_at
        """
    )
    return [_to_role(row) for row in rows]


async def deactivate_expired_roles() -> list[str]:
    """
    Clear the active flag on expired roles.

    Returns:
        Corporation ids that had at least one role deactivated
    """
    rows = await db.fetch(
        """
        UPDATE hr_roles
        SET is_active = false, updated_at = NOW()
        WHERE is_active = true AND expires_at IS NOT NULL AND expires_at <= NOW()
        RETURNING corporation_id
        """
    )

    corporation_ids = sorted({row["corporation_id"] for row in rows})
    if rows:
        logger.info(
            "expired_roles_deactivated",
            count=len(rows),
            corporations=len(corporation_ids),
        )
    return corporation_ids


async def ensure_can_manage_roles(
    corporation_id: str,
    user_id: str,
    character_ids: list[str],
    is_admin: bool,
    oracle: MembershipOracle,
) -> None:
    """
    Require the caller to be a site admin or the corporation's CEO.

    CEO status is resolved by matching the caller's linked characters against
    the oracle's reported CEO. An oracle failure here counts as "not CEO".

    Raises:
        ForbiddenError: If the caller may not manage the corporation's roles
    """
    if is_admin:
        return

    ceo_id: str | None = None
    if character_ids:
        try:
            info = await oracle.get_corporation_info(corporation_id)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            logger.warning(
                "ceo_lookup_failed", corporation_id=corporation_id, error=str(e)
            )
            info = None
        if info and info.get("ceoId") is not None:
            ceo_id = str(info["ceoId"])

    if ceo_id is None or ceo_id not in {str(c) for c in character_ids}:
        logger.warning(
            "role_management_denied", corporation_id=corporation_id, user_id=user_id
        )
        raise ForbiddenError(
            "Only site admins or the corporation CEO can manage HR roles",
            context={"corporation_id": corporation_id},
        )

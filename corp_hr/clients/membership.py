"""Corporation membership oracle: port and HTTP client."""

from __future__ import annotations

from typing import Any, Protocol

import aiohttp
from structlog import get_logger

from corp_hr.core.config import settings

logger = get_logger()


class MembershipOracle(Protocol):
    """
    Authoritative source for corporation membership and leadership.

    Role grants consume get_members only; get_corporation_info is used to
    resolve the CEO when deciding who may manage a corporation's HR roles.
    """

    async def get_members(self, corporation_id: str) -> list[dict[str, Any]]:
        """Return member records, each carrying at least "characterId"."""
        ...

    async def get_corporation_info(self, corporation_id: str) -> dict[str, Any] | None:
        """Return corporation details including "ceoId", or None if unknown."""
        ...


class CorporationDataClient:
    """HTTP client for the corporation data service."""

    def __init__(self, base_url: str | None = None, token: str | None = None) -> None:
        """Initialize client from settings unless overridden."""
        self.base_url = (base_url or settings.corporation_data_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=30)  # 30 second timeout

        self.headers = {"Accept": "application/json"}
        token = token if token is not None else settings.corporation_data_token
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def get(self, path: str) -> Any:
        """
        Make GET request to the corporation data service.

        Args:
            path: Endpoint path (e.g., "corporations/98000001/members")

        Returns:
            Decoded JSON body, or None on 404

        Raises:
            aiohttp.ClientError: On request failure
        """
        url = f"{self.base_url}/{path.lstrip('/')}"

        logger.info("corporation_data_request", path=path)

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(url, headers=self.headers) as response:
                if response.status == 404:
                    logger.warning("corporation_data_not_found", path=path)
                    return None
                response.raise_for_status()
                return await response.json()

    async def get_members(self, corporation_id: str) -> list[dict[str, Any]]:
        """
        Fetch the member list of a corporation.

        Accepts either a bare JSON list or {"members": [...]}. Character ids
        are normalized to strings so they compare equal to stored ids.

        Raises:
            aiohttp.ClientError: If the request fails
            ValueError: If the payload is not a member list
        """
        data = await self.get(f"corporations/{corporation_id}/members")

        if data is None:
            return []
        if isinstance(data, dict):
            data = data.get("members", [])
        if not isinstance(data, list):
            raise ValueError(f"Invalid member payload for corporation {corporation_id}")

        members = []
        for member in data:
            if not isinstance(member, dict) or "characterId" not in member:
                continue
            members.append({**member, "characterId": str(member["characterId"])})

        logger.info(
            "corporation_members_fetched", corporation_id=corporation_id, count=len(members)
        )
        return members

    async def get_corporation_info(self, corporation_id: str) -> dict[str, Any] | None:
        """
        Fetch corporation details.

        Returns:
            Corporation dict with "ceoId" as a string, or None if unknown
        """
        data = await self.get(f"corporations/{corporation_id}")

        if not data:
            return None
        if data.get("ceoId") is not None:
            data["ceoId"] = str(data["ceoId"])
        return data  # type: ignore[no-any-return]


# Module-level singleton
membership_client = CorporationDataClient()

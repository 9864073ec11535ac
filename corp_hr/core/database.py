"""Database connection pool manager."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import asyncpg
from structlog import get_logger

from corp_hr.core.config import settings

logger = get_logger()


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode/encode jsonb columns as Python objects."""
    await conn.set_type_codec(
        "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
    )


def record_to_dict(record: asyncpg.Record | dict[str, Any]) -> dict[str, Any]:
    """Convert a row to a plain dict with UUID values rendered as strings."""
    return {k: str(v) if isinstance(v, UUID) else v for k, v in record.items()}


class Database:
    """Thin wrapper around an asyncpg pool."""

    def __init__(self) -> None:
        self.pool: asyncpg.Pool | None = None

    async def connect(self, max_retries: int = 3) -> None:
        """
        Create the connection pool, retrying with exponential backoff.

        Raises:
            Exception: The last connection error once retries are exhausted
        """
        for attempt in range(1, max_retries + 1):
            try:
                self.pool = await asyncpg.create_pool(
                    settings.database_url,
                    min_size=settings.database_pool_min_size,
                    max_size=settings.database_pool_max_size,
                    command_timeout=60,
                    init=_init_connection,
                )
                logger.info("database_connected", attempt=attempt)
                return
            except Exception as e:
                logger.warning(
                    "database_connect_failed", attempt=attempt, error=str(e)
                )
                if attempt == max_retries:
                    raise
                await asyncio.sleep(2**attempt)

    async def disconnect(self) -> None:
        """Close the pool if one is open."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("database_disconnected")

    def _require_pool(self) -> asyncpg.Pool:
        if not self.pool:
            raise RuntimeError("Database pool not initialized")
        return self.pool

    async def execute(self, query: str, *args: Any) -> str:
        async with self._require_pool().acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self._require_pool().acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self._require_pool().acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self._require_pool().acquire() as conn:
            return await conn.fetchval(query, *args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a connection and run the block inside one transaction.

        A state change and its activity-log row are written through the
        yielded connection so that both commit or neither does.
        """
        async with self._require_pool().acquire() as conn:
            async with conn.transaction():
                yield conn


# Module-level singleton
db = Database()

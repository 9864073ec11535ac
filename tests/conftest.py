"""Pytest configuration for tests."""

import os
from pathlib import Path

import asyncpg
import pytest
import pytest_asyncio
from asyncpg import create_pool
from dotenv import load_dotenv

# Load .env.test file if it exists
env_test_path = Path(__file__).parent.parent / ".env.test"
if env_test_path.exists():
    load_dotenv(env_test_path)

# Set test environment variables before any imports (only if not already set)
os.environ.setdefault("DATABASE_URL", "postgresql://localhost:5432/corp_hr_test")
os.environ.setdefault("CORPORATION_DATA_URL", "http://corporation-data.test")
os.environ.setdefault("LOG_LEVEL", "INFO")

SCHEMA_PATH = Path(__file__).parent.parent / "database" / "schema.sql"


@pytest_asyncio.fixture
async def db_pool():
    """
    Create a test database connection pool and initialize the app's DB.

    Applies database/schema.sql (idempotent) and skips the test when no
    database is reachable at DATABASE_URL.
    """
    from corp_hr.core import database as db_module
    from corp_hr.core.config import settings

    try:
        pool = await create_pool(
            settings.database_url,
            min_size=1,
            max_size=5,
            init=db_module._init_connection,
        )
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        pytest.skip(f"Test database unavailable: {e}")

    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_PATH.read_text())

    # Initialize the app's database singleton so service functions work
    db_module.db.pool = pool

    yield pool

    # Clean up
    db_module.db.pool = None
    await pool.close()


@pytest_asyncio.fixture
async def clean_db(db_pool):
    """Clean database and the role cache before each test."""
    from corp_hr.services.hr import hr

    async with db_pool.acquire() as conn:
        # Clear all tables in reverse dependency order
        await conn.execute("DELETE FROM application_activity_log")
        await conn.execute("DELETE FROM application_recommendations")
        await conn.execute("DELETE FROM applications")
        await conn.execute("DELETE FROM hr_notes")
        await conn.execute("DELETE FROM hr_roles")

    hr.role_cache.clear()

    yield db_pool


@pytest.fixture
def fake_oracle():
    """Membership oracle with no corporations; tests add members and CEOs."""
    from tests.fixtures.factories import FakeMembershipOracle

    return FakeMembershipOracle()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: marks tests as end-to-end HTTP tests (slower)")
    config.addinivalue_line("markers", "unit: marks tests as unit tests (fast)")
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (medium speed)"
    )


@pytest.fixture
def orchestrator(fake_oracle):
    """HR orchestrator wired to the fake oracle and a private role cache."""
    from corp_hr.core.cache import RoleCache
    from corp_hr.services.hr import HrOrchestrator

    return HrOrchestrator(oracle=fake_oracle, cache=RoleCache())

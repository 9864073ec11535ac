"""E2E test fixtures for HTTP testing."""

from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from corp_hr.main import app
from corp_hr.middleware.rate_limit import limiter
from corp_hr.services.hr import hr
from tests.fixtures.factories import FakeMembershipOracle


@pytest_asyncio.fixture
async def http_client(clean_db):
    """HTTP client for testing actual FastAPI app.

    Uses the clean_db fixture to ensure database is clean for each test.
    The app's lifespan context manager is not run - we test the app
    without the scheduler for faster, more deterministic tests. Rate
    limiting is switched off so tests can submit freely.
    """
    limiter.enabled = False
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    limiter.enabled = True


@pytest.fixture
def mock_oracle():
    """Swap the app's membership oracle for an in-memory one."""
    oracle = FakeMembershipOracle()
    with patch.object(hr, "oracle", oracle):
        yield oracle

"""Tests for CallerContextMiddleware."""

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from corp_hr.middleware.caller_context import CallerContextMiddleware, resolve_request_id


def make_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(CallerContextMiddleware)

    @app.get("/test")
    async def test_route(request: Request):
        return {
            "request_id": request.state.request_id,
            "context": structlog.contextvars.get_contextvars(),
        }

    return app


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=make_app()), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_request_id_generated_and_echoed(client):
    response = await client.get("/test")

    request_id = response.headers["X-Request-ID"]
    assert len(request_id) == 36
    assert response.json()["request_id"] == request_id
    assert response.json()["context"] == {"request_id": request_id}


@pytest.mark.asyncio
async def test_well_formed_incoming_request_id_is_reused(client):
    response = await client.get("/test", headers={"X-Request-ID": "session-abc.42"})

    assert response.headers["X-Request-ID"] == "session-abc.42"


@pytest.mark.asyncio
async def test_malformed_incoming_request_id_is_replaced(client):
    response = await client.get("/test", headers={"X-Request-ID": "x" * 65})

    assert response.headers["X-Request-ID"] != "x" * 65
    assert len(response.headers["X-Request-ID"]) == 36


@pytest.mark.asyncio
async def test_caller_headers_are_bound(client):
    """Service log events inside the request carry who is acting."""
    response = await client.get(
        "/test",
        headers={
            "X-Caller-User-Id": "5f0c6a4e-1b7d-4d43-9b61-3a0f6f3f9d10",
            "X-Caller-Character-Id": "90000001",
        },
    )

    context = response.json()["context"]
    assert context["caller_user_id"] == "5f0c6a4e-1b7d-4d43-9b61-3a0f6f3f9d10"
    assert context["caller_character_id"] == "90000001"
    assert "caller_is_admin" not in context


def test_resolve_request_id():
    assert resolve_request_id("abc-123") == "abc-123"
    assert resolve_request_id("has space") != "has space"
    assert resolve_request_id("trailing\n") != "trailing\n"
    assert len(resolve_request_id(None)) == 36

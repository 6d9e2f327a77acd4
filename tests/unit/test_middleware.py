"""
Unit Tests - Rate Limiting
"""
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.serving.api import middleware
from src.serving.api.middleware import RateLimitMiddleware


@pytest.fixture
def clock(monkeypatch):
    state = SimpleNamespace(now=1000.0)
    monkeypatch.setattr(middleware, "time", SimpleNamespace(monotonic=lambda: state.now))
    return state


@pytest.fixture
def limiter():
    app = FastAPI()

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return RateLimitMiddleware(app, max_requests=2, window_seconds=60)


async def call(limiter, client_ip):
    async with AsyncClient(transport=ASGITransport(app=limiter), base_url="http://test") as client:
        return await client.get("/ping", headers={"X-Forwarded-For": client_ip})


class TestRateLimitMiddleware:
    """Tests for the sliding window and its per-client bookkeeping"""

    async def test_window_slides(self, limiter, clock):
        assert (await call(limiter, "10.0.0.1")).status_code == 200
        assert (await call(limiter, "10.0.0.1")).status_code == 200
        assert (await call(limiter, "10.0.0.1")).status_code == 429

        clock.now += 60
        response = await call(limiter, "10.0.0.1")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "1"

    async def test_idle_clients_are_forgotten(self, limiter, clock):
        await call(limiter, "10.0.0.1")
        await call(limiter, "10.0.0.2")
        assert set(limiter._hits) == {"10.0.0.1", "10.0.0.2"}

        clock.now += 61
        await call(limiter, "10.0.0.3")

        assert set(limiter._hits) == {"10.0.0.3"}

    async def test_rejected_requests_keep_only_counted_hits(self, limiter, clock):
        for _ in range(4):
            await call(limiter, "10.0.0.1")

        assert len(limiter._hits["10.0.0.1"]) == 2

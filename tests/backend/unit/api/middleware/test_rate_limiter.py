"""Tests for the fixed window rate limiter and its middleware."""

from __future__ import annotations

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.rate_limiter import FixedWindowRateLimiter, RateLimitDecision, RateLimitMiddleware


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestFixedWindowRateLimiter:
    def test_rejects_invalid_configuration(self) -> None:
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(0, 5)
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(60, 0)

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 3, clock=clock)

        decisions = [await limiter.check_and_increment("1.2.3.4") for _ in range(4)]

        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0]
        assert all(d.reset_at == 1_060.0 for d in decisions)

    @pytest.mark.asyncio
    async def test_window_resets_after_expiry(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 1, clock=clock)
        await limiter.check_and_increment("client")
        assert not (await limiter.check_and_increment("client")).allowed

        clock.advance(60.5)
        decision = await limiter.check_and_increment("client")

        assert decision.allowed
        assert decision.reset_at == 1_120.5

    @pytest.mark.asyncio
    async def test_window_still_open_at_exact_reset_time(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(10, 1, clock=clock)
        await limiter.check_and_increment("client")

        clock.advance(10)

        assert not (await limiter.check_and_increment("client")).allowed

    @pytest.mark.asyncio
    async def test_rejected_requests_still_count(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 2, clock=clock)
        for _ in range(5):
            await limiter.check_and_increment("client")

        clock.advance(30)

        # Same window: the hammering keeps the client limited
        assert not (await limiter.check_and_increment("client")).allowed

    @pytest.mark.asyncio
    async def test_clients_are_independent(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 1, clock=clock)
        await limiter.check_and_increment("a")

        assert (await limiter.check_and_increment("b")).allowed
        assert not (await limiter.check_and_increment("a")).allowed

    @pytest.mark.asyncio
    async def test_cleanup_drops_only_expired_windows(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 5, clock=clock)
        await limiter.check_and_increment("old")
        clock.advance(45)
        await limiter.check_and_increment("new")
        clock.advance(20)

        removed = await limiter.cleanup_expired()

        assert removed == 1
        assert (await limiter.check_and_increment("new")).remaining == 3

    @pytest.mark.asyncio
    async def test_reset_forgets_windows(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 1, clock=clock)
        await limiter.check_and_increment("client")

        await limiter.reset()

        assert (await limiter.check_and_increment("client")).allowed

    @pytest.mark.asyncio
    async def test_start_and_stop_cleanup_task(self, clock: FakeClock) -> None:
        limiter = FixedWindowRateLimiter(60, 1, clock=clock, cleanup_interval=3600)

        await limiter.start()
        assert limiter._cleanup_task is not None
        await limiter.stop()

        assert limiter._cleanup_task is None


class TestRateLimitDecision:
    def test_retry_after_rounds_up(self) -> None:
        decision = RateLimitDecision(allowed=False, remaining=0, reset_at=100.2, limit=5)

        assert decision.retry_after(now=90.0) == 11
        assert decision.retry_after(now=200.0) == 0

    def test_headers(self) -> None:
        decision = RateLimitDecision(allowed=True, remaining=4, reset_at=100.2, limit=5)

        assert decision.headers() == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": "101",
        }


def build_app(limiter: FixedWindowRateLimiter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, rate_limiter=limiter)

    @app.get("/api/v1/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/api/v1/conversations")
    async def conversations() -> list[str]:
        return []

    return app


class TestRateLimitMiddleware:
    def test_adds_rate_limit_headers(self, clock: FakeClock) -> None:
        client = TestClient(build_app(FixedWindowRateLimiter(60, 2, clock=clock)))

        response = client.get("/api/v1/conversations")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "1"

    def test_returns_429_envelope_when_exhausted(self, clock: FakeClock) -> None:
        client = TestClient(build_app(FixedWindowRateLimiter(60, 1, clock=clock)))
        client.get("/api/v1/conversations")

        response = client.get("/api/v1/conversations")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        error = response.json()["error"]
        assert error["code"] == "rate_limit"
        assert error["path"] == "/api/v1/conversations"
        assert error["details"][0]["field"] == "retry_after"

    def test_health_is_exempt(self, clock: FakeClock) -> None:
        client = TestClient(build_app(FixedWindowRateLimiter(60, 1, clock=clock)))

        statuses = [client.get("/api/v1/health").status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    def test_keyed_by_forwarded_address(self, clock: FakeClock) -> None:
        client = TestClient(build_app(FixedWindowRateLimiter(60, 1, clock=clock)))

        first = client.get("/api/v1/conversations", headers={"X-Forwarded-For": "10.0.0.1"})
        second = client.get("/api/v1/conversations", headers={"X-Forwarded-For": "10.0.0.2, 172.16.0.1"})
        third = client.get("/api/v1/conversations", headers={"X-Forwarded-For": "10.0.0.1"})

        assert [first.status_code, second.status_code, third.status_code] == [200, 200, 429]

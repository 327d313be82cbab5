"""Tests for the fixed-window rate limiter (F8)."""

import pytest

from readspeed.core.rate_limiting import RateLimiter, client_ip


class FakeClock:
    """Settable clock in epoch seconds."""

    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestRateLimiter:
    """Tests for RateLimiter.check."""

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, clock):
        limiter = RateLimiter(3, 60_000, clock=clock)
        results = [await limiter.check("1.2.3.4") for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[0].reset_at == 1_060.0

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, clock):
        limiter = RateLimiter(1, 60_000, clock=clock)
        assert (await limiter.check("a")).allowed
        assert (await limiter.check("b")).allowed
        assert not (await limiter.check("a")).allowed
        assert len(limiter) == 2

    @pytest.mark.asyncio
    async def test_new_window_after_expiry(self, clock):
        limiter = RateLimiter(1, 60_000, clock=clock)
        await limiter.check("a")
        assert not (await limiter.check("a")).allowed

        clock.now += 60
        result = await limiter.check("a")
        assert result.allowed
        assert result.reset_at == 1_120.0

    @pytest.mark.asyncio
    async def test_headers(self, clock):
        limiter = RateLimiter(5, 900_000, clock=clock)
        result = await limiter.check("a")
        assert result.headers() == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": "1900",
        }


class TestCleanup:
    """Tests for cleanup and reset."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_expired(self, clock):
        limiter = RateLimiter(5, 10_000, clock=clock)
        await limiter.check("old")
        clock.now += 5
        await limiter.check("new")
        clock.now += 6

        assert await limiter.cleanup() == 1
        assert len(limiter) == 1

    @pytest.mark.asyncio
    async def test_reset(self, clock):
        limiter = RateLimiter(1, 10_000, clock=clock)
        await limiter.check("a")
        await limiter.reset()
        assert len(limiter) == 0
        assert (await limiter.check("a")).allowed


class TestClientIp:
    """Tests for client_ip."""

    def test_forwarded_for_first_entry(self):
        headers = {"x-forwarded-for": " 203.0.113.7 , 10.0.0.1", "x-real-ip": "10.0.0.2"}
        assert client_ip(headers, "127.0.0.1") == "203.0.113.7"

    @pytest.mark.parametrize(
        "headers,expected",
        [
            ({"x-real-ip": "10.0.0.2"}, "10.0.0.2"),
            ({"cf-connecting-ip": "198.51.100.1"}, "198.51.100.1"),
            ({}, "127.0.0.1"),
        ],
    )
    def test_fallbacks(self, headers, expected):
        assert client_ip(headers, "127.0.0.1") == expected

    def test_unknown(self):
        assert client_ip({}) == "unknown"

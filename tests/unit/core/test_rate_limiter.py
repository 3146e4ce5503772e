"""
Unit tests for Rate Limiter Pattern
"""

import pytest

from cybernexus.core.architecture.rate_limiter import RateLimitConfig, RateLimiter


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Fixtures
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    """5 requests per 10 seconds"""
    return RateLimiter("test", RateLimitConfig(max_requests=5, time_window=10.0), clock=clock)


@pytest.mark.unit
class TestRateLimitConfig:

    def test_capacity_defaults_to_max_requests(self):
        assert RateLimitConfig(max_requests=7, time_window=1.0).capacity == 7

    def test_burst_size_overrides_capacity(self):
        assert RateLimitConfig(max_requests=7, time_window=1.0, burst_size=20).capacity == 20

    def test_refill_rate(self):
        assert RateLimitConfig(max_requests=100, time_window=900.0).refill_rate == pytest.approx(100 / 900)


@pytest.mark.unit
class TestTokenBucket:

    def test_allows_up_to_capacity(self, limiter):
        results = [limiter.check("10.0.0.1") for _ in range(5)]

        assert all(r.allowed for r in results)
        assert results[-1].rate_limit.remaining == 0

    def test_denies_when_empty(self, limiter):
        for _ in range(5):
            limiter.check("10.0.0.1")

        result = limiter.check("10.0.0.1")

        assert not result.allowed
        assert result.retry_after == pytest.approx(2.0)
        assert limiter.denied_requests == 1

    def test_refills_over_time(self, limiter, clock):
        for _ in range(5):
            limiter.check("10.0.0.1")

        clock.advance(2.0)

        assert limiter.check("10.0.0.1").allowed
        assert not limiter.check("10.0.0.1").allowed

    def test_refill_never_exceeds_capacity(self, limiter, clock):
        limiter.check("10.0.0.1")
        clock.advance(3600)

        result = limiter.check("10.0.0.1")

        assert result.rate_limit.remaining == 4

    def test_keys_are_independent(self, limiter):
        for _ in range(5):
            limiter.check("10.0.0.1")

        assert not limiter.check("10.0.0.1").allowed
        assert limiter.check("10.0.0.2").allowed

    def test_reset_single_key(self, limiter):
        for _ in range(5):
            limiter.check("10.0.0.1")

        limiter.reset("10.0.0.1")

        assert limiter.check("10.0.0.1").allowed

    def test_reset_all(self, limiter):
        for key in ("a", "b"):
            for _ in range(5):
                limiter.check(key)

        limiter.reset()

        assert limiter.check("a").allowed
        assert limiter.check("b").allowed


@pytest.mark.unit
class TestBucketPruning:

    def test_refilled_buckets_are_dropped(self, limiter, clock):
        for i in range(50):
            limiter.check(f"10.0.0.{i}")
        assert limiter.tracked_keys == 50

        clock.advance(10.0)
        limiter.check("10.0.1.1")

        assert limiter.tracked_keys == 1

    def test_draining_buckets_are_kept(self, limiter, clock):
        limiter.check("idle")
        clock.advance(8.0)
        for _ in range(5):
            limiter.check("busy")

        clock.advance(2.0)
        limiter.check("new")

        assert limiter.tracked_keys == 2
        assert limiter.check("busy").rate_limit.remaining == 0

    def test_dropped_bucket_starts_full(self, limiter, clock):
        limiter.check("client")
        clock.advance(10.0)
        limiter.check("someone-else")

        result = limiter.check("client")

        assert result.allowed
        assert result.rate_limit.remaining == 4

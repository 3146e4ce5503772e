"""
⚡ Rate Limiter Pattern
Token bucket per client key, used by the HTTP rate limiting middleware
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from cybernexus.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limiter configuration"""
    max_requests: int = 100           # Bucket capacity
    time_window: float = 60.0         # Seconds to refill a full bucket
    burst_size: Optional[int] = None  # Overrides capacity when set

    @property
    def capacity(self) -> int:
        return self.burst_size or self.max_requests

    @property
    def refill_rate(self) -> float:
        """Tokens per second"""
        return self.max_requests / self.time_window


@dataclass
class RateLimit:
    """State of one bucket after a check"""
    key: str
    remaining: int
    limit: int
    reset_time: float
    retry_after: Optional[float] = None


@dataclass
class RateLimitResult:
    allowed: bool
    rate_limit: RateLimit

    @property
    def retry_after(self) -> Optional[float]:
        return self.rate_limit.retry_after


class RateLimiter:
    """Token bucket rate limiter keyed by an arbitrary string (client IP)"""

    def __init__(self, name: str, config: Optional[RateLimitConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._tokens: Dict[str, float] = {}
        self._last_refill: Dict[str, float] = {}
        self._denied_requests = 0
        self._last_sweep = clock()

    def check(self, key: str, requests: int = 1) -> RateLimitResult:
        """Consume `requests` tokens from the bucket of `key` if available"""
        now = self._clock()
        capacity = self.config.capacity
        refill_rate = self.config.refill_rate

        if now - self._last_sweep >= self.config.time_window:
            self._drop_full_buckets(now)

        if key not in self._tokens:
            self._tokens[key] = capacity
            self._last_refill[key] = now

        elapsed = now - self._last_refill[key]
        self._tokens[key] = min(capacity, self._tokens[key] + elapsed * refill_rate)
        self._last_refill[key] = now

        if self._tokens[key] >= requests:
            self._tokens[key] -= requests
            return RateLimitResult(
                allowed=True,
                rate_limit=RateLimit(
                    key=key,
                    remaining=int(self._tokens[key]),
                    limit=capacity,
                    reset_time=now + (capacity - self._tokens[key]) / refill_rate,
                ),
            )

        retry_after = (requests - self._tokens[key]) / refill_rate
        self._denied_requests += 1
        logger.warning("Rate limit exceeded", limiter=self.name, key=key, retry_after=round(retry_after, 1))
        return RateLimitResult(
            allowed=False,
            rate_limit=RateLimit(
                key=key,
                remaining=0,
                limit=capacity,
                reset_time=now + retry_after,
                retry_after=retry_after,
            ),
        )

    def _drop_full_buckets(self, now: float) -> None:
        """Forget buckets that have refilled; a full bucket is the same as a new one"""
        capacity = self.config.capacity
        refill_rate = self.config.refill_rate
        for key, last_refill in list(self._last_refill.items()):
            if self._tokens[key] + (now - last_refill) * refill_rate >= capacity:
                del self._tokens[key]
                del self._last_refill[key]
        self._last_sweep = now

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one bucket, or all of them"""
        if key is None:
            self._tokens.clear()
            self._last_refill.clear()
        else:
            self._tokens.pop(key, None)
            self._last_refill.pop(key, None)

    @property
    def tracked_keys(self) -> int:
        return len(self._tokens)

    @property
    def denied_requests(self) -> int:
        return self._denied_requests

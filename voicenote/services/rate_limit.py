"""Fixed-window usage metering for submission endpoints."""
import asyncio
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict
from voicenote.core.logging import logger


@dataclass(frozen=True)
class RateLimitConfig:
    """Requests allowed per window."""
    limit: int
    window_seconds: int


RATE_LIMIT_PRESETS: Dict[str, RateLimitConfig] = {
    # Strict limits for authentication endpoints
    "auth": RateLimitConfig(limit=5, window_seconds=60),
    # Posting content
    "content": RateLimitConfig(limit=20, window_seconds=60),
    # Read operations
    "read": RateLimitConfig(limit=100, window_seconds=60),
}


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single metered request."""
    allowed: bool
    remaining: int
    reset_after_seconds: int
    limit: int

    def headers(self) -> Dict[str, str]:
        """Rate limit headers to attach to an HTTP response."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_after_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_after_seconds)
        return headers


@dataclass
class _Window:
    started_at: float
    count: int


class FixedWindowRateLimiter:
    """Counts requests per identity in fixed windows that open on first use."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the limiter.

        Args:
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, identity: str, limit: int, window_seconds: float) -> RateLimitResult:
        """
        Record a request for ``identity`` and report whether it is allowed.

        Every call counts, including rejected ones.

        Args:
            identity: Caller identity (user id, client address, ...)
            limit: Requests allowed per window
            window_seconds: Window length in seconds

        Returns:
            RateLimitResult for this request
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)
            if window is None or now - window.started_at > window_seconds:
                window = _Window(started_at=now, count=0)
                self._windows[identity] = window

            window.count += 1
            count = window.count
            reset_after = max(0, math.ceil(window.started_at + window_seconds - now))

        allowed = count <= limit
        if not allowed:
            logger.warning(f"Rate limit exceeded for {identity}: {count}/{limit} in {window_seconds}s")

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, limit - count),
            reset_after_seconds=reset_after,
            limit=limit
        )

    def check_preset(self, identity: str, preset: str) -> RateLimitResult:
        """Check against one of ``RATE_LIMIT_PRESETS``."""
        config = RATE_LIMIT_PRESETS[preset]
        return self.check(identity, config.limit, config.window_seconds)

    def reset(self, identity: str) -> None:
        """Forget the window for an identity."""
        with self._lock:
            self._windows.pop(identity, None)

    def prune(self, max_age_seconds: float = 3600.0) -> int:
        """
        Drop windows that started more than ``max_age_seconds`` ago.

        Returns:
            Number of identities removed
        """
        now = self._clock()
        with self._lock:
            stale = [key for key, w in self._windows.items() if now - w.started_at > max_age_seconds]
            for key in stale:
                del self._windows[key]
        if stale:
            logger.debug(f"Pruned {len(stale)} rate limit windows")
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


# Global rate limiter instance
rate_limiter = FixedWindowRateLimiter()


async def prune_periodically(
    limiter: FixedWindowRateLimiter,
    interval_seconds: float = 3600.0,
    max_age_seconds: float = 3600.0
) -> None:
    """Prune stale windows every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        limiter.prune(max_age_seconds)

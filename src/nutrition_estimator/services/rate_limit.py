"""Request rate limiting."""

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol


@dataclass(frozen=True)
class RateLimitDecision:
    """Whether a request may proceed and, if not, when to retry."""

    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class RateLimiter(Protocol):
    """Interface for per-client request limiting."""

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for ``key`` and decide whether it is allowed."""


@dataclass
class _Window:
    count: int
    resets_at: datetime


@dataclass
class InMemoryRateLimiter(RateLimiter):
    """Fixed-window limiter kept in process memory."""

    max_requests: int
    window_seconds: int
    _windows: dict[str, _Window]
    _next_prune_at: datetime

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows = {}
        self._next_prune_at = datetime.now(tz=UTC)

    def check(self, key: str) -> RateLimitDecision:
        """Count a request against the key's current window."""
        now = datetime.now(tz=UTC)
        if now >= self._next_prune_at:
            self._prune(now)
        window = self._windows.get(key)
        if window is None or now >= window.resets_at:
            window = _Window(
                count=0, resets_at=now + timedelta(seconds=self.window_seconds)
            )
            self._windows[key] = window
        if window.count >= self.max_requests:
            retry_after = math.ceil((window.resets_at - now).total_seconds())
            return RateLimitDecision(
                allowed=False, remaining=0, retry_after_seconds=max(retry_after, 1)
            )
        window.count += 1
        return RateLimitDecision(
            allowed=True, remaining=self.max_requests - window.count
        )

    def _prune(self, now: datetime) -> None:
        """Drop expired windows, including those of clients that never return."""
        expired = [
            key for key, window in self._windows.items() if now >= window.resets_at
        ]
        for key in expired:
            del self._windows[key]
        self._next_prune_at = now + timedelta(seconds=self.window_seconds)

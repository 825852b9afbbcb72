"""Rate limiting — in-memory sliding window, namespaced per environment.

Demo keys live under "demo:" so anonymous demo traffic can never pollute or
exhaust production buckets.

Uses in-memory storage (works for single-instance). For multi-instance,
swap _store for a shared backend.
"""
from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock

from vulniq.environment import Environment

logger = logging.getLogger(__name__)


@dataclass
class _RateWindow:
    """Sliding window counter for a single client."""
    timestamps: list[float] = field(default_factory=list)
    window_seconds: float = 0.0

    def count_in_window(self, window_seconds: float, now: float) -> int:
        self.window_seconds = window_seconds
        cutoff = now - window_seconds
        # Prune old entries
        self.timestamps = [t for t in self.timestamps if t > cutoff]
        return len(self.timestamps)

    def record(self, now: float) -> None:
        self.timestamps.append(now)

    def is_stale(self, now: float) -> bool:
        """No hit left inside the window this key was last checked with."""
        return not self.timestamps or self.timestamps[-1] <= now - self.window_seconds


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window frees a slot (at least 1)."""
        return max(1, math.ceil(self.reset_at - time.time()))


class RateLimitStore:
    """In-memory rate limit storage with automatic cleanup."""

    def __init__(self):
        self._windows: dict[str, _RateWindow] = defaultdict(_RateWindow)
        self._lock = Lock()
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = 300  # 5 minutes

    def check_and_record(self, key: str, limit: int, window_seconds: float) -> tuple[bool, int, float]:
        """Check if request is allowed, record it if so.

        Returns (allowed, current_count, seconds_until_oldest_expires).
        """
        with self._lock:
            self._maybe_cleanup()
            now = time.monotonic()
            window = self._windows[key]
            count = window.count_in_window(window_seconds, now)
            if count >= limit:
                oldest = window.timestamps[0] if window.timestamps else now
                return False, count, oldest + window_seconds - now
            window.record(now)
            return True, count + 1, window.timestamps[0] + window_seconds - now

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()

    def _maybe_cleanup(self):
        now = time.monotonic()
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        # Remove entries with no hit inside their own window
        stale = [k for k, w in self._windows.items() if w.is_stale(now)]
        for k in stale:
            del self._windows[k]


# Global store
_store = RateLimitStore()


def reset_store():
    """Reset rate limit state — used in tests."""
    _store.clear()


def namespaced_key(key: str, env: Environment = Environment.PROD) -> str:
    return f"demo:{key}" if Environment.parse(env) is Environment.DEMO else key


def rate_limit(
    key: str,
    limit: int,
    window_seconds: float,
    env: Environment = Environment.PROD,
) -> RateLimitResult:
    """Count one request against ``key`` in ``env``'s namespace."""
    now = time.time()
    if not key:
        return RateLimitResult(allowed=True, remaining=limit, reset_at=now + window_seconds)

    allowed, count, reset_in = _store.check_and_record(namespaced_key(key, env), limit, window_seconds)
    if not allowed:
        logger.warning("Rate limited: %s (%d/%d in %ss)", namespaced_key(key, env), count, limit, window_seconds)
        return RateLimitResult(allowed=False, remaining=0, reset_at=now + reset_in)
    return RateLimitResult(allowed=True, remaining=max(0, limit - count), reset_at=now + reset_in)

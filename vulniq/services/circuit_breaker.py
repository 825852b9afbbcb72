"""Circuit breaker for calls to external services.

CLOSED -> OPEN after ``failure_threshold`` consecutive failures.
OPEN rejects calls with CircuitOpenError until ``reset_timeout`` elapses,
then HALF_OPEN lets calls through; ``half_open_success_threshold`` successes
close it again, any failure re-opens it.

Route handlers wrapped with with_api_handler turn CircuitOpenError into a 503
with Retry-After.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Optional, TypeVar

from vulniq.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    def __init__(
        self,
        name: str = "circuit-breaker",
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        half_open_success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_success_threshold = half_open_success_threshold
        self._clock = clock
        self._lock = Lock()

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` through the breaker; raises CircuitOpenError while open."""
        self._before_call()
        try:
            result = await fn()
        except Exception as exc:
            self._on_failure(exc)
            raise
        self._on_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            if self.state is not CircuitState.OPEN:
                return
            now = self._clock()
            elapsed = now - (self.last_failure_time or now)
            if elapsed >= self.reset_timeout:
                self._transition(CircuitState.HALF_OPEN)
                return
            retry_after_ms = (self.reset_timeout - elapsed) * 1000
            raise CircuitOpenError(self.name, retry_after=retry_after_ms)

    def _on_success(self) -> None:
        with self._lock:
            if self.state is CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.half_open_success_threshold:
                    self._transition(CircuitState.CLOSED)
            elif self.state is CircuitState.CLOSED:
                self.failure_count = 0

    def _on_failure(self, exc: Exception) -> None:
        with self._lock:
            self.last_failure_time = self._clock()
            if self.state is CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self.state is CircuitState.CLOSED:
                self.failure_count += 1
                if self.failure_count >= self.failure_threshold:
                    self._transition(CircuitState.OPEN)
            logger.debug(
                "[CircuitBreaker:%s] Failure %d/%d: %s",
                self.name, self.failure_count, self.failure_threshold, exc,
            )

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self.state
        self.state = new_state
        if new_state is CircuitState.CLOSED:
            self.failure_count = 0
            self.success_count = 0
        elif new_state is CircuitState.HALF_OPEN:
            self.success_count = 0
        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log("[CircuitBreaker:%s] State: %s -> %s", self.name, old_state.value, new_state.value)

    def reset(self) -> None:
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.last_failure_time = None

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "success_count": self.success_count,
                "last_failure_time": self.last_failure_time,
            }

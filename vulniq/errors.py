"""Exception types raised by the security core."""
from __future__ import annotations

from typing import Optional

CIRCUIT_OPEN = "CIRCUIT_OPEN"


class PrefixIsolationError(RuntimeError):
    """A trusted caller handed the storage gateway a key from the wrong environment.

    This is a programming error, not bad user input; user-supplied keys are
    rejected by validate_s3_key long before they reach the gateway. Never
    catch and ignore it.
    """

    def __init__(self, env: str, key: str, prefix: str):
        self.env = env
        self.prefix = prefix
        super().__init__(
            f'S3 key "{key[:30]}..." does not start with required prefix '
            f'"{prefix}" for env={env}'
        )


class CircuitOpenError(Exception):
    """Raised instead of calling a dependency whose circuit breaker is open."""

    code = CIRCUIT_OPEN

    def __init__(self, name: str, retry_after: Optional[float] = None):
        self.name = name
        self.retry_after = retry_after  # milliseconds
        super().__init__(f'Circuit breaker "{name}" is OPEN')


class DemoModeBlocked(Exception):
    """Raised by the production_only dependency; rendered as the 403 block response."""

    def __init__(self, request_id: str = ""):
        self.request_id = request_id
        super().__init__("Demo mode cannot access production APIs")

"""Per-request context handed to wrapped route handlers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class RouteContext:
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    body: Any = None
    query: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    is_demo_mode: bool = False

"""ASGI middleware keeping the mirrored /demo/api surface to the allow-list.

Only the stateless endpoints in ALLOWED_DEMO_APIS may exist under
/demo/api/. Anything else under that prefix is answered with a 404 envelope
before routing, so a production route accidentally mounted under /demo can
never be reached.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from vulniq.api.responses import ApiErrors
from vulniq.demo.mode import DEMO_ROUTE_PREFIX, is_allowed_demo_api

logger = logging.getLogger(__name__)

_DEMO_API_PREFIX = f"{DEMO_ROUTE_PREFIX}/api/"


class DemoApiGuardMiddleware:
    """Pure ASGI middleware — no BaseHTTPMiddleware body-consumption issues."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path: str = scope.get("path", "")
        if not path.startswith(_DEMO_API_PREFIX) or is_allowed_demo_api(path):
            await self.app(scope, receive, send)
            return

        logger.info("Demo guard rejected non-allow-listed path %s", path)
        response = ApiErrors.not_found("Endpoint")
        await response(scope, receive, send)

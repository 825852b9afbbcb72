"""Security headers middleware — fills in the header policy on API responses."""
from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vulniq.security.headers import SECURITY_HEADERS


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add the security header policy to every API response.

    Handlers built on the response helpers already carry the policy; this
    covers framework-generated responses (404s, validation errors). Headers
    a handler set explicitly are left alone, and health probes keep their
    reduced set.
    """

    _API_PREFIXES = ("/api/", "/demo/api/")
    _HEALTH_PATHS = frozenset({"/api/health", "/demo/api/health"})

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        path = request.url.path
        if path in self._HEALTH_PATHS:
            return response
        if any(path.startswith(p) for p in self._API_PREFIXES):
            for name, value in SECURITY_HEADERS.items():
                if name not in response.headers:
                    response.headers[name] = value

        return response

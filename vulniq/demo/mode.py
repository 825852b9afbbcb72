"""Demo-mode classification — the single source of truth for demo detection.

Principles:
1. Demo mode is decided server-side, from headers only.
2. Demo requests never reach production data or APIs.
3. Anything ambiguous is classified as production (fail-closed).

The x-vulniq-demo-mode header is trusted only because the edge proxy strips
or overwrites it on every inbound request: it forces "true" on /demo routes
(after dropping cookie and authorization) and "false" everywhere else. If
that proxy contract breaks, so does this module's trust in the header.

Accepted residual risk: a demo client whose traffic reaches us untagged is
classified as production. Failing closed to production cannot protect
against that case; only the proxy can.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi.responses import JSONResponse

from vulniq.api.responses import generate_request_id
from vulniq.security.headers import security_headers
from vulniq.security.request import HasHeaders, RequestContext, parse_absolute_url

# ONLY paths starting with this are demo
DEMO_ROUTE_PREFIX = "/demo"

DEMO_MODE_HEADER = "x-vulniq-demo-mode"

# Client-side storage namespaces
DEMO_STORAGE_PREFIX = "vulniq_demo_"
PROD_STORAGE_PREFIX = "vulniq_"

# Stateless endpoints mirrored under /demo/api/. They must not touch the
# database, production credentials, or have side effects.
ALLOWED_DEMO_APIS: tuple[str, ...] = (
    "/api/health",
    "/api/detect-language",
    "/api/format-code",
    "/api/icons",
)

DEMO_BLOCKED_MESSAGE = "Demo mode cannot access production APIs"
DEMO_BLOCKED_CODE = "DEMO_MODE_BLOCKED"


@dataclass(frozen=True)
class ModeDecision:
    allowed: bool
    is_demo_mode: bool
    block_response: Optional[JSONResponse] = None


def is_demo_request(request: HasHeaders) -> bool:
    """Classify a request as demo (True) or production (False).

    First match wins:
    1. Referer is an absolute URL whose path starts with /demo -> True
    2. Referer present but unparseable -> False, the header is not consulted
    3. x-vulniq-demo-mode is exactly "true" -> True
    4. otherwise -> False
    """
    ctx = RequestContext.capture(request)
    if ctx.referer:
        parts = parse_absolute_url(ctx.referer)
        if parts is None:
            return False
        if parts.path.startswith(DEMO_ROUTE_PREFIX):
            return True

    return ctx.demo_header == "true"


def is_demo_path(pathname: Optional[str]) -> bool:
    if not pathname or not isinstance(pathname, str):
        return False
    return pathname.startswith(DEMO_ROUTE_PREFIX)


def get_storage_key(base_key: str, is_demo_mode: bool) -> str:
    """Mode-namespaced client storage key, so demo state never shadows production state."""
    prefix = DEMO_STORAGE_PREFIX if is_demo_mode else PROD_STORAGE_PREFIX
    return f"{prefix}{base_key}"


def is_allowed_demo_api(path: str) -> bool:
    """Whether ``path`` (with or without the /demo prefix) is on the demo allow-list."""
    if path.startswith(DEMO_ROUTE_PREFIX + "/"):
        path = path[len(DEMO_ROUTE_PREFIX):]
    path = path.rstrip("/") or "/"
    return path in ALLOWED_DEMO_APIS


def get_demo_mode_user_id(request: HasHeaders) -> str:
    """Rate-limit identity for anonymous demo traffic: first X-Forwarded-For hop."""
    chain = RequestContext.capture(request).forwarded_chain
    return chain[0] if chain else "demo-user-unknown-ip"


def demo_mode_blocked_response(request_id: Optional[str] = None) -> JSONResponse:
    """403 returned when a demo-classified request reaches a production API."""
    rid = request_id or generate_request_id()
    return JSONResponse(
        {
            "success": False,
            "error": DEMO_BLOCKED_MESSAGE,
            "code": DEMO_BLOCKED_CODE,
            "requestId": rid,
        },
        status_code=403,
        headers=security_headers({
            "x-request-id": rid,
            "x-demo-blocked": "true",
        }),
    )


def validate_request_mode(request: HasHeaders, *, allow_demo: bool = False) -> ModeDecision:
    """Classify and decide in one step.

    ``allow_demo=True`` is for endpoints that are deliberately demo-safe
    (stateless helpers like code formatting).
    """
    is_demo = is_demo_request(request)
    if is_demo and not allow_demo:
        return ModeDecision(allowed=False, is_demo_mode=True, block_response=demo_mode_blocked_response())
    return ModeDecision(allowed=True, is_demo_mode=is_demo)

"""Demo-mode enforcement for production API routes.

Use ``require_production_mode`` (or the ``with_production_only`` wrapper, or
the ``production_only`` FastAPI dependency) at the start of every production
route:

    async def list_pdfs(request, ctx):
        blocked = require_production_mode(request, request_id=ctx.request_id)
        if blocked:
            return blocked
        ...
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from starlette.requests import Request
from starlette.responses import Response

from vulniq.api.context import RouteContext
from vulniq.api.responses import generate_request_id
from vulniq.demo.mode import demo_mode_blocked_response, is_demo_request
from vulniq.errors import DemoModeBlocked
from vulniq.logging_config import request_id_var
from vulniq.security.request import HasHeaders, RequestContext

logger = logging.getLogger(__name__)


def require_production_mode(request: HasHeaders, *, request_id: Optional[str] = None) -> Optional[Response]:
    """Return the 403 block response for demo requests, None to proceed."""
    if not is_demo_request(request):
        return None

    rid = request_id or generate_request_id()
    logger.warning("[SECURITY] Demo mode attempted to access production API. RequestId: %s", rid)
    return demo_mode_blocked_response(rid)


def is_request_from_demo_mode(request: HasHeaders) -> bool:
    """Non-blocking check, for routes that only branch on the mode."""
    return is_demo_request(request)


def with_production_only(handler: Callable[..., Awaitable[Response]]):
    """Wrap a ``handler(request, context)`` so demo requests never reach it.

    The block happens before the handler is called, so none of its side
    effects can run for a demo request.
    """

    async def wrapped(request: Request, context: Optional[RouteContext] = None) -> Response:
        blocked = require_production_mode(
            request, request_id=context.request_id if context else None
        )
        if blocked is not None:
            return blocked
        return await handler(request, context)

    wrapped.__name__ = getattr(handler, "__name__", "wrapped")
    wrapped.__doc__ = handler.__doc__
    return wrapped


async def production_only(request: Request) -> None:
    """FastAPI dependency form of require_production_mode."""
    if is_demo_request(request):
        rid = request_id_var.get() or generate_request_id()
        logger.warning("[SECURITY] Demo mode attempted to access production API. RequestId: %s", rid)
        raise DemoModeBlocked(rid)


@dataclass(frozen=True)
class AccessAudit:
    is_demo_mode: bool
    client_ip: str
    user_agent: str
    referer: str


def audit_api_access(request: HasHeaders, route_name: str) -> AccessAudit:
    """Summarise who is calling a route; logs only demo traffic. Never raises."""
    try:
        ctx = RequestContext.capture(request)
        is_demo = is_demo_request(request)
    except Exception:
        logger.debug("Audit header parsing failed for %s", route_name, exc_info=True)
        return AccessAudit(is_demo_mode=False, client_ip="unknown", user_agent="unknown", referer="none")

    chain = ctx.forwarded_chain
    client_ip = (chain[0] if chain else None) or ctx.real_ip or "unknown"
    audit = AccessAudit(
        is_demo_mode=is_demo,
        client_ip=client_ip,
        user_agent=ctx.user_agent or "unknown",
        referer=ctx.referer or "none",
    )
    if is_demo:
        logger.info("[API_AUDIT] Demo mode access to %s from %s", route_name, client_ip)
    return audit

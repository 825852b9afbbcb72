"""Origin / CSRF guard and client identity helpers."""
from __future__ import annotations

from config.settings import settings
from vulniq.security.request import HasHeaders, RequestContext, parse_absolute_url, url_host

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def is_same_origin(request: HasHeaders) -> bool:
    """CSRF defense-in-depth for cookie-authenticated endpoints.

    - No Origin header: allowed (non-browser clients, server-to-server)
    - Origin without Host: rejected
    - Origin that does not parse: rejected
    - Otherwise the Origin's host must equal the Host header
    """
    ctx = RequestContext.capture(request)
    if not ctx.origin:
        return True
    if not ctx.host:
        return False
    parts = parse_absolute_url(ctx.origin)
    if parts is None or not parts.netloc:
        return False
    return url_host(parts) == ctx.host


def requires_csrf_protection(method: str) -> bool:
    """GET/HEAD/OPTIONS are exempt; everything that changes state is not."""
    return (method or "").upper() in STATE_CHANGING_METHODS


def get_client_ip(request: HasHeaders) -> str:
    """Client IP from the proxy chain.

    AWS ALB appends the client to X-Forwarded-For, so the LAST entry is the
    client there. Cloudflare and nginx put it FIRST. Set PROXY_TYPE to match
    the deployment.
    """
    ctx = RequestContext.capture(request)
    chain = ctx.forwarded_chain
    if ctx.forwarded_for:
        if not chain:
            return "unknown"
        if settings.PROXY_TYPE == "aws-alb":
            return chain[-1]
        return chain[0]
    return ctx.real_ip or "unknown"

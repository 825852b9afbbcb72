"""Fixed security header policy applied to every API response."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

SECURITY_HEADERS: Mapping[str, str] = MappingProxyType({
    # Never cache authenticated responses / PII
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    # Shared proxies must key on the session cookie
    "Vary": "Cookie",
    "X-XSS-Protection": "1; mode=block",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Embedder-Policy": "require-corp",
})

# Health probes get a reduced set (ALB / ECS checks)
HEALTH_HEADERS: Mapping[str, str] = MappingProxyType({
    "Cache-Control": "no-store",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "X-Permitted-Cross-Domain-Policies": "none",
})


def security_headers(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Fresh copy of the policy merged with ``extra`` (last write wins)."""
    headers = dict(SECURITY_HEADERS)
    if extra:
        headers.update(extra)
    return headers

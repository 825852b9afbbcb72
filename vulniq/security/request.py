"""Narrow request interface shared by the classifier and the guards.

Only header lookups are needed, so any framework's request object can be
used through a thin adapter. Starlette's ``Request`` already satisfies it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import SplitResult, urlsplit

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


class HeaderSource(Protocol):
    """Case-insensitive header lookup."""

    def get(self, name: str) -> Optional[str]: ...


class HasHeaders(Protocol):
    headers: HeaderSource


class MappingHeaders:
    """Adapter turning a plain dict into a case-insensitive HeaderSource."""

    def __init__(self, headers: dict[str, str] | None = None):
        self._headers = {k.lower(): v for k, v in (headers or {}).items()}

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._headers.get(name.lower(), default)


class HeaderRequest:
    """Minimal request carrying only headers (and a method), e.g. for workers."""

    def __init__(self, headers: dict[str, str] | None = None, method: str = "GET"):
        self.headers = MappingHeaders(headers)
        self.method = method


@dataclass(frozen=True)
class RequestContext:
    """Security-relevant signals captured once from an inbound request."""
    referer: Optional[str]
    demo_header: Optional[str]
    origin: Optional[str]
    host: Optional[str]
    forwarded_for: Optional[str]
    real_ip: Optional[str]
    user_agent: Optional[str]

    @classmethod
    def capture(cls, request: HasHeaders) -> "RequestContext":
        h = request.headers
        return cls(
            referer=h.get("referer"),
            demo_header=h.get("x-vulniq-demo-mode"),
            origin=h.get("origin"),
            host=h.get("host"),
            forwarded_for=h.get("x-forwarded-for"),
            real_ip=h.get("x-real-ip"),
            user_agent=h.get("user-agent"),
        )

    @property
    def forwarded_chain(self) -> list[str]:
        """X-Forwarded-For entries in order, blanks dropped."""
        if not self.forwarded_for:
            return []
        return [ip.strip() for ip in self.forwarded_for.split(",") if ip.strip()]


def parse_absolute_url(value: str) -> Optional[SplitResult]:
    """Parse ``value`` as an absolute URL, or None when it is not one.

    Relative references, empty strings and values with an invalid port are
    rejected.
    """
    try:
        parts = urlsplit(value.strip())
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if not parts.scheme:
        return None
    return parts


def url_host(parts: SplitResult) -> str:
    """host[:port] as a browser reports it: lower-case, default port dropped."""
    hostname = parts.hostname or ""
    if ":" in hostname:
        hostname = f"[{hostname}]"
    port = parts.port
    if port is None or _DEFAULT_PORTS.get(parts.scheme.lower()) == port:
        return hostname
    return f"{hostname}:{port}"

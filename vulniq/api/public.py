"""Stateless, demo-safe endpoints.

These are the only routes mirrored under /demo/api/. None of them touch
storage, user data or production credentials; demo traffic is rate limited
in the demo namespace by client IP.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from vulniq.api.responses import ApiErrors, generate_request_id, success_response
from vulniq.demo.mode import get_demo_mode_user_id, validate_request_mode
from vulniq.environment import Environment
from vulniq.logging_config import request_id_var
from vulniq.security.headers import HEALTH_HEADERS
from vulniq.security.origin import get_client_ip
from vulniq.services.rate_limit import rate_limit

logger = logging.getLogger(__name__)
router = APIRouter()

ICON_NAMES: tuple[str, ...] = (
    "Activity", "Airplay", "AlarmClock", "AlertCircle", "Anchor", "Archive",
    "AtSign", "Award", "BarChart", "Bell", "BookOpen", "Box",
    "Briefcase", "Calendar", "Camera", "CheckCircle", "Clipboard", "Clock",
    "Cloud", "Code", "Compass", "Copy", "CreditCard", "Database",
    "Download", "Edit", "ExternalLink", "Eye", "File", "FileText",
    "Filter", "Flag", "Folder", "GitBranch", "GitCommit", "Github",
    "Globe", "Grid", "HardDrive", "Hash", "Heart", "HelpCircle",
    "Home", "Image", "Inbox", "Info", "Key", "Layers",
    "Layout", "Link", "List", "Lock", "LogIn", "LogOut",
    "Mail", "Map", "Monitor", "Package", "Search", "Server",
    "Settings", "Shield", "Star", "Table", "Tag", "Target",
    "Terminal", "Trash", "TrendingUp", "Unlock", "Upload", "User",
    "Zap",
)

MAX_FORMAT_INPUT = 200_000  # characters


class FormatCodeRequest(BaseModel):
    code: str = Field(..., max_length=MAX_FORMAT_INPUT)
    indent: int = Field(4, ge=1, le=8)


def format_code(code: str, indent: int = 4) -> str:
    """Whitespace normalisation: tabs to spaces, no trailing blanks, one final newline."""
    lines = [line.expandtabs(indent).rstrip() for line in code.replace("\r\n", "\n").split("\n")]
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines) + "\n" if lines else ""


def _request_id() -> str:
    return request_id_var.get() or generate_request_id()


def _over_limit(request: Request, bucket: str, limit: int, request_id: str):
    """429 response when a caller is over ``limit`` per minute, else None."""
    decision = validate_request_mode(request, allow_demo=True)
    if decision.is_demo_mode:
        identity, env = get_demo_mode_user_id(request), Environment.DEMO
    else:
        identity, env = get_client_ip(request), Environment.PROD
    rl = rate_limit(f"{bucket}:{identity}", limit, 60, env=env)
    if not rl.allowed:
        return ApiErrors.rate_limited(retry_after=rl.retry_after, request_id=request_id)
    return None


@router.api_route("/api/health", methods=["GET", "HEAD"])
@router.api_route("/demo/api/health", methods=["GET", "HEAD"])
async def health(request: Request):
    """Lightweight liveness probe: no storage, no rate limiting."""
    body = "ok" if request.method == "GET" else ""
    return PlainTextResponse(body, headers=dict(HEALTH_HEADERS))


@router.get("/api/icons")
@router.get("/demo/api/icons")
async def list_icons(request: Request):
    request_id = _request_id()
    blocked = _over_limit(request, "icons", 60, request_id)
    if blocked is not None:
        return blocked
    return success_response(
        {"icons": list(ICON_NAMES), "total": len(ICON_NAMES)}, request_id=request_id
    )


@router.post("/api/format-code")
@router.post("/demo/api/format-code")
async def format_code_endpoint(req: FormatCodeRequest, request: Request):
    request_id = _request_id()
    blocked = _over_limit(request, "format-code", 30, request_id)
    if blocked is not None:
        return blocked
    formatted = format_code(req.code, req.indent)
    return success_response(
        {"code": formatted, "changed": formatted != req.code},
        request_id=request_id,
    )

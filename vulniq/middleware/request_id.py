"""Request ID tracing middleware — adds X-Request-ID to every response."""
from __future__ import annotations

import re

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vulniq.api.responses import generate_request_id
from vulniq.logging_config import request_id_var

# Client-supplied IDs end up in log lines; keep them boring
_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every request/response for tracing.

    - A well-formed client X-Request-ID is honored
    - Otherwise a fresh ID is generated
    - The ID is set in a ContextVar so loggers can include it
    - A handler that already chose an ID keeps it in the response header
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get("x-request-id") or ""
        rid = incoming if _SAFE_ID.match(incoming) else generate_request_id()
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        if "x-request-id" not in response.headers:
            response.headers["X-Request-ID"] = rid
        return response

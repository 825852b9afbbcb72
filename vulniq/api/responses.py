"""API response envelopes.

Every JSON response has the same shape and always carries the security
header policy:

    {"success": true,  "data": ..., "meta": ..., "requestId": ...}
    {"success": false, "error": "...", "code": "...", "requestId": ..., "details": ...}

Optional keys are omitted rather than sent as null. ``details`` is only ever
sent when NODE_ENV is "development" (or NODE_ENV is unset and APP_ENV is).
"""
from __future__ import annotations

import logging
import math
import random
import string
import time
import traceback
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Optional

from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response

from config.settings import is_development
from vulniq.api.context import RouteContext
from vulniq.errors import CIRCUIT_OPEN
from vulniq.logging_config import request_id_var
from vulniq.security.headers import security_headers

logger = logging.getLogger(__name__)

Handler = Callable[[Request, RouteContext], Awaitable[Response]]

_BASE36 = string.digits + string.ascii_lowercase


def generate_request_id() -> str:
    """Random UUID; timestamp + random suffix if uuid generation is unavailable."""
    try:
        return str(uuid.uuid4())
    except Exception:  # pragma: no cover - os.urandom failure
        suffix = "".join(random.choice(_BASE36) for _ in range(7))
        return f"{int(time.time() * 1000)}-{suffix}"


def _response_headers(request_id: Optional[str], headers: Optional[Mapping[str, str]]) -> dict[str, str]:
    extra: dict[str, str] = {}
    if request_id:
        extra["x-request-id"] = request_id
    if headers:
        extra.update(headers)
    return security_headers(extra)


def success_response(
    data: Any = None,
    *,
    status: int = 200,
    request_id: Optional[str] = None,
    meta: Optional[dict] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Success envelope. ``data`` is omitted when None (falsy values like [] are kept)."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if meta:
        body["meta"] = meta
    if request_id:
        body["requestId"] = request_id
    return JSONResponse(body, status_code=status, headers=_response_headers(request_id, headers))


def error_response(
    message: str,
    *,
    status: int = 500,
    code: Optional[str] = None,
    request_id: Optional[str] = None,
    details: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Error envelope. ``details`` never leaves the process outside development."""
    body: dict[str, Any] = {"success": False, "error": message}
    if code:
        body["code"] = code
    if request_id:
        body["requestId"] = request_id
    if details and is_development():
        body["details"] = details
    return JSONResponse(body, status_code=status, headers=_response_headers(request_id, headers))


def validation_error_response(errors: list[dict], *, request_id: Optional[str] = None) -> JSONResponse:
    """400 with per-field messages, from pydantic's ``ValidationError.errors()``."""
    fields = [
        {
            "field": ".".join(str(loc) for loc in err.get("loc", ())) or "root",
            "message": err.get("msg", "Invalid value"),
            "code": err.get("type", "invalid"),
        }
        for err in errors
    ]
    body: dict[str, Any] = {
        "success": False,
        "error": "Validation failed",
        "code": "VALIDATION_ERROR",
        "fields": fields,
    }
    if request_id:
        body["requestId"] = request_id
    return JSONResponse(body, status_code=400, headers=_response_headers(request_id, None))


class ApiErrors:
    """Pre-defined error responses for common scenarios."""

    @staticmethod
    def bad_request(message: str = "Invalid request", **options) -> JSONResponse:
        return error_response(message, status=400, code="BAD_REQUEST", **options)

    @staticmethod
    def unauthorized(message: str = "Authentication required", **options) -> JSONResponse:
        return error_response(message, status=401, code="UNAUTHORIZED", **options)

    @staticmethod
    def forbidden(message: str = "Access denied", **options) -> JSONResponse:
        return error_response(message, status=403, code="FORBIDDEN", **options)

    @staticmethod
    def demo_blocked(**options) -> JSONResponse:
        return error_response(
            "Demo mode cannot access production APIs", status=403, code="DEMO_MODE_BLOCKED", **options
        )

    @staticmethod
    def not_found(resource: str = "Resource", **options) -> JSONResponse:
        return error_response(f"{resource} not found", status=404, code="NOT_FOUND", **options)

    @staticmethod
    def conflict(message: str = "Resource already exists", **options) -> JSONResponse:
        return error_response(message, status=409, code="CONFLICT", **options)

    @staticmethod
    def validation_error(message: str = "Validation failed", **options) -> JSONResponse:
        return error_response(message, status=422, code="VALIDATION_ERROR", **options)

    @staticmethod
    def rate_limited(
        *, retry_after: Optional[int] = None, message: str = "Too many requests", **options
    ) -> JSONResponse:
        """429; ``retry_after`` is in seconds."""
        headers = dict(options.pop("headers", None) or {})
        if retry_after:
            headers["Retry-After"] = str(retry_after)
        return error_response(message, status=429, code="RATE_LIMITED", headers=headers, **options)

    @staticmethod
    def internal_error(message: Optional[str] = None, **options) -> JSONResponse:
        """500. Never pass raw exception text here outside development."""
        return error_response(
            message or "An unexpected error occurred", status=500, code="INTERNAL_ERROR", **options
        )

    @staticmethod
    def service_unavailable(
        *, retry_after: Optional[float] = None, message: str = "Service temporarily unavailable", **options
    ) -> JSONResponse:
        """503; ``retry_after`` is in milliseconds, sent rounded up to whole seconds."""
        headers = dict(options.pop("headers", None) or {})
        if retry_after:
            headers["Retry-After"] = str(math.ceil(retry_after / 1000))
        return error_response(message, status=503, code="SERVICE_UNAVAILABLE", headers=headers, **options)


def handle_handler_error(error: Exception, request_id: Optional[str]) -> JSONResponse:
    """Translate an exception escaping a route handler into a client-safe response.

    This is the only place internal errors become responses; the full error
    is logged, the client gets a generic message.
    """
    logger.error("[API Error] RequestId: %s", request_id, exc_info=error)

    if getattr(error, "code", None) == CIRCUIT_OPEN:
        return ApiErrors.service_unavailable(
            retry_after=getattr(error, "retry_after", None) or 30000,
            request_id=request_id,
        )

    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return ApiErrors.internal_error(
        str(error) if is_development() else None,
        request_id=request_id,
        details={"stack": stack},
    )


def _initial_context(request: Request, context: Optional[RouteContext]) -> RouteContext:
    if context is not None:
        return context
    return RouteContext(
        query=dict(request.query_params),
        params=dict(request.path_params),
    )


def with_api_handler(handler: Handler, *, include_request_id: bool = True):
    """Wrap a route handler with request IDs and error translation.

    The wrapped callable works as a plain Starlette endpoint (``request`` only)
    and can also be called with an explicit RouteContext.
    """

    async def wrapped(request: Request, context: Optional[RouteContext] = None) -> Response:
        request_id = generate_request_id() if include_request_id else None
        ctx = replace(_initial_context(request, context), request_id=request_id)
        token = request_id_var.set(request_id) if request_id else None
        try:
            return await handler(request, ctx)
        except StarletteHTTPException:
            raise
        except Exception as error:
            return handle_handler_error(error, request_id)
        finally:
            if token is not None:
                request_id_var.reset(token)

    wrapped.__name__ = getattr(handler, "__name__", "wrapped")
    wrapped.__doc__ = handler.__doc__
    return wrapped

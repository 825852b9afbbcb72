"""Composed API route handler.

Runs the common checks in a fixed order before the route logic:

1. demo-mode block
2. authentication
3. CSRF (same-origin) for state-changing methods
4. rate limiting (per user when signed in, per IP otherwise)
5. query validation
6. JSON body parsing and validation
7. the handler itself

    class CreateNote(BaseModel):
        title: str

    async def create_note(request, ctx):
        return {"id": "123", "title": ctx.body.title}

    app.add_route(
        "/api/notes",
        create_api_handler(create_note, body_model=CreateNote,
                           rate_limit=RateLimitRule(30, 3600, "notes:create")),
        methods=["POST"],
    )

A handler may return a Response (sent as is) or plain data (wrapped in a
success envelope).
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Type

from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response

from vulniq.api.context import RouteContext
from vulniq.api.responses import (
    ApiErrors,
    error_response,
    generate_request_id,
    handle_handler_error,
    success_response,
    validation_error_response,
)
from vulniq.auth import get_request_user_id
from vulniq.demo import enforcement
from vulniq.demo.mode import is_demo_request
from vulniq.environment import Environment
from vulniq.logging_config import request_id_var
from vulniq.security.origin import get_client_ip, is_same_origin, requires_csrf_protection
from vulniq.services.rate_limit import rate_limit as check_rate_limit

RouteHandler = Callable[[Request, RouteContext], Awaitable[Any]]
Authenticator = Callable[[Request], Optional[str]]

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: float
    key_prefix: str


async def _read_json_body(request: Request) -> tuple[bool, Any]:
    """(ok, body); ok is False when the body is not valid JSON."""
    try:
        raw = await request.body()
        return True, json.loads(raw) if raw else None
    except (ValueError, UnicodeDecodeError):
        return False, None


def create_api_handler(
    handler: RouteHandler,
    *,
    require_auth: bool = True,
    require_production_mode: bool = True,
    rate_limit: Optional[RateLimitRule] = None,
    csrf_protection: bool = True,
    body_model: Optional[Type[BaseModel]] = None,
    query_model: Optional[Type[BaseModel]] = None,
    authenticate: Authenticator = get_request_user_id,
):
    async def wrapped(request: Request) -> Response:
        request_id = generate_request_id()
        method = (request.method or "GET").upper()
        token = request_id_var.set(request_id)
        try:
            if require_production_mode:
                blocked = enforcement.require_production_mode(request, request_id=request_id)
                if blocked is not None:
                    return blocked

            user_id = None
            if require_auth:
                user_id = authenticate(request)
                if not user_id:
                    return ApiErrors.unauthorized(request_id=request_id)

            if csrf_protection and requires_csrf_protection(method) and not is_same_origin(request):
                return ApiErrors.forbidden("Forbidden", request_id=request_id)

            is_demo = is_demo_request(request)
            if rate_limit is not None:
                identity = f"user:{user_id}" if user_id else f"ip:{get_client_ip(request)}"
                rl = check_rate_limit(
                    f"{rate_limit.key_prefix}:{identity}",
                    rate_limit.limit,
                    rate_limit.window_seconds,
                    env=Environment.for_request(is_demo),
                )
                if not rl.allowed:
                    return ApiErrors.rate_limited(retry_after=rl.retry_after, request_id=request_id)

            query: Any = dict(request.query_params)
            if query_model is not None:
                try:
                    query = query_model.model_validate(query)
                except ValidationError as exc:
                    return validation_error_response(exc.errors(), request_id=request_id)

            body: Any = None
            if method in _BODY_METHODS:
                ok, body = await _read_json_body(request)
                if not ok and body_model is not None:
                    return error_response(
                        "Invalid JSON body", status=400, code="INVALID_JSON", request_id=request_id
                    )
                if body_model is not None:
                    try:
                        body = body_model.model_validate(body if body is not None else {})
                    except ValidationError as exc:
                        return validation_error_response(exc.errors(), request_id=request_id)

            ctx = RouteContext(
                request_id=request_id,
                user_id=user_id,
                body=body,
                query=query,
                params=dict(request.path_params),
                is_demo_mode=is_demo,
            )
            result = await handler(request, ctx)
            if isinstance(result, Response):
                return result
            return success_response(result, request_id=request_id)
        except StarletteHTTPException:
            raise
        except Exception as error:
            return handle_handler_error(error, request_id)
        finally:
            request_id_var.reset(token)

    wrapped.__name__ = getattr(handler, "__name__", "wrapped")
    wrapped.__doc__ = handler.__doc__
    return wrapped
"""VulnIQ API — FastAPI application with demo/production isolation."""
from __future__ import annotations

import logging

from vulniq.logging_config import setup_logging
setup_logging()
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import settings
from vulniq.api.context import RouteContext
from vulniq.api.files import router as files_router, storage_breaker
from vulniq.api.public import router as public_router
from vulniq.api.responses import (
    ApiErrors,
    error_response,
    handle_handler_error,
    success_response,
    validation_error_response,
    with_api_handler,
)
from vulniq.auth import require_user_id
from vulniq.demo.enforcement import audit_api_access, production_only, with_production_only
from vulniq.demo.mode import demo_mode_blocked_response
from vulniq.errors import DemoModeBlocked
from vulniq.logging_config import request_id_var
from vulniq.services.circuit_breaker import CircuitState

# ── Sentry Error Tracking ────────────────────────
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.WARNING, event_level=logging.ERROR),
        ],
        # Scrub sensitive data
        send_default_pii=False,
        before_send=lambda event, hint: (
            {**event, "request": {**event.get("request", {}), "cookies": None}}
            if "request" in event else event
        ),
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Validate configuration before anything else
    from vulniq.startup_checks import validate_settings
    validate_settings()
    logger.info("VulnIQ API ready (env=%s, proxy=%s)", settings.APP_ENV, settings.PROXY_TYPE)

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="VulnIQ API",
    version="0.1.0",
    description="VulnIQ backend — production API plus the stateless /demo/api mirror",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Keep /demo/api/ to the allow-listed stateless endpoints
from vulniq.middleware.demo_guard import DemoApiGuardMiddleware
app.add_middleware(DemoApiGuardMiddleware)

# Request ID tracing
from vulniq.middleware.request_id import RequestIDMiddleware
app.add_middleware(RequestIDMiddleware)

# Security headers: outermost layer
from vulniq.middleware.security_headers import SecurityHeadersMiddleware
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(public_router)
app.include_router(files_router)


async def readiness(request: Request, ctx: RouteContext):
    """Readiness probe for orchestrators.

    Returns 503 while storage is unconfigured or its circuit is open.
    """
    storage = storage_breaker.status()
    if not settings.AWS_S3_BUCKET_NAME:
        return ApiErrors.service_unavailable(message="Storage not configured", request_id=ctx.request_id)
    if storage["state"] == CircuitState.OPEN.value:
        return ApiErrors.service_unavailable(message="Storage unavailable", request_id=ctx.request_id)
    return success_response({"ready": True, "storage": storage["state"]}, request_id=ctx.request_id)


app.add_route("/api/health/ready", with_api_handler(with_production_only(readiness)), methods=["GET"])


@app.get("/api/profile/audit", dependencies=[Depends(production_only)])
async def profile_audit(request: Request, user_id: str = Depends(require_user_id)):
    """Echo what the server sees about the caller, for monitoring."""
    audit = audit_api_access(request, "profile/audit")
    return success_response({
        "userId": user_id,
        "isDemoMode": audit.is_demo_mode,
        "clientIp": audit.client_ip,
        "userAgent": audit.user_agent,
        "referer": audit.referer,
    }, request_id=request_id_var.get() or None)


# --- Structured Error Responses ---

_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    503: "SERVICE_UNAVAILABLE",
}


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean, structured validation errors instead of raw Pydantic output."""
    return validation_error_response(exc.errors(), request_id=request_id_var.get() or None)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Consistent error envelope for all HTTP errors."""
    return error_response(
        exc.detail if isinstance(exc.detail, str) else "Request failed",
        status=exc.status_code,
        code=_STATUS_CODES.get(exc.status_code, "HTTP_ERROR"),
        request_id=request_id_var.get() or None,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(DemoModeBlocked)
async def demo_blocked_handler(request: Request, exc: DemoModeBlocked):
    return demo_mode_blocked_response(exc.request_id or None)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions — never leak stack traces."""
    return handle_handler_error(exc, request_id_var.get() or None)

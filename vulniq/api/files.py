"""Production file endpoints — presigned S3 URLs and prompt text storage.

Every route here is production-only, authenticated and CSRF-checked through
create_api_handler, and only ever touches the production environment's
bucket/prefix. Client-supplied keys are validated against the caller's own
``users/<id>/`` folder; any rejection reason stays in the logs.
"""
from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from vulniq.api.context import RouteContext
from vulniq.api.handler import RateLimitRule, create_api_handler
from vulniq.api.responses import ApiErrors, success_response
from vulniq.environment import Environment
from vulniq.security.keys import CLIENT_KEY_ERROR, validate_s3_key
from vulniq.services.circuit_breaker import CircuitBreaker
from vulniq.storage import gateway
from vulniq.storage.config import prefix_for
from vulniq.storage.keys import (
    generate_profile_image_s3_key,
    generate_prompt_s3_key,
    generate_s3_key,
)

logger = logging.getLogger(__name__)
router = APIRouter()

ENV = Environment.PROD
URL_TTL = 3600

storage_breaker = CircuitBreaker(name="s3", failure_threshold=5, reset_timeout=30.0)

_ID_PATTERN = r"^[a-zA-Z0-9_-]{1,64}$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class UploadUrlRequest(_CamelModel):
    use_case_id: str = Field(..., alias="useCaseId", pattern=_ID_PATTERN)
    file_name: str = Field(..., alias="fileName", min_length=1, max_length=255)
    content_type: Literal["application/pdf"] = Field("application/pdf", alias="contentType")


class KeyQuery(_CamelModel):
    s3_key: str = Field(..., alias="s3Key", min_length=1, max_length=500)


class PromptRequest(_CamelModel):
    agent: str = Field(..., pattern=_ID_PATTERN)
    text: str = Field(..., min_length=1, max_length=100_000)


class ProfileImageRequest(_CamelModel):
    file_name: str = Field(..., alias="fileName", min_length=1, max_length=255)
    ext: Literal["png", "jpg", "jpeg", "webp", "gif"]


def user_prefix(user_id: str) -> str:
    return f"{prefix_for(ENV)}{user_id}/"


def _checked_key(key: str, ctx: RouteContext):
    """(key, None) when ``key`` is the caller's own, else (None, uniform 400 response)."""
    check = validate_s3_key(key, required_prefix=user_prefix(ctx.user_id))
    if check.ok:
        return key, None
    logger.warning("Rejected s3 key for user %s: %s", ctx.user_id, check.error)
    return None, ApiErrors.bad_request(CLIENT_KEY_ERROR, request_id=ctx.request_id)


async def create_upload_url(request, ctx: RouteContext):
    req: UploadUrlRequest = ctx.body
    key, rejected = _checked_key(generate_s3_key(ENV, ctx.user_id, req.use_case_id, req.file_name), ctx)
    if rejected is not None:
        return rejected
    url = await storage_breaker.call(
        lambda: gateway.get_presigned_upload_url(ENV, key, req.content_type, URL_TTL)
    )
    return success_response(
        {"s3Key": key, "uploadUrl": url, "expiresIn": URL_TTL},
        status=201,
        request_id=ctx.request_id,
    )


async def create_download_url(request, ctx: RouteContext):
    key, rejected = _checked_key(ctx.query.s3_key, ctx)
    if rejected is not None:
        return rejected
    url = await storage_breaker.call(lambda: gateway.get_presigned_download_url(ENV, key, URL_TTL))
    return {"downloadUrl": url, "expiresIn": URL_TTL}


async def delete_file(request, ctx: RouteContext):
    key, rejected = _checked_key(ctx.query.s3_key, ctx)
    if rejected is not None:
        return rejected
    await storage_breaker.call(lambda: gateway.delete_from_s3(ENV, key))
    return {"deleted": True}


async def save_prompt(request, ctx: RouteContext):
    req: PromptRequest = ctx.body
    key, rejected = _checked_key(generate_prompt_s3_key(ENV, ctx.user_id, req.agent), ctx)
    if rejected is not None:
        return rejected
    await storage_breaker.call(lambda: gateway.upload_text_to_s3(ENV, key, req.text))
    return success_response({"s3Key": key}, status=201, request_id=ctx.request_id)


async def read_prompt(request, ctx: RouteContext):
    key, rejected = _checked_key(ctx.query.s3_key, ctx)
    if rejected is not None:
        return rejected
    text = await storage_breaker.call(lambda: gateway.download_text_from_s3(ENV, key))
    return {"s3Key": key, "text": text}


async def create_profile_image_url(request, ctx: RouteContext):
    req: ProfileImageRequest = ctx.body
    key, rejected = _checked_key(
        generate_profile_image_s3_key(ENV, ctx.user_id, req.file_name, req.ext), ctx
    )
    if rejected is not None:
        return rejected
    content_type = "image/jpeg" if req.ext in ("jpg", "jpeg") else f"image/{req.ext}"
    url = await storage_breaker.call(
        lambda: gateway.get_presigned_upload_url(ENV, key, content_type, URL_TTL)
    )
    return success_response(
        {"s3Key": key, "uploadUrl": url, "expiresIn": URL_TTL},
        status=201,
        request_id=ctx.request_id,
    )


_uploads = RateLimitRule(limit=30, window_seconds=3600, key_prefix="pdfs:upload")
_reads = RateLimitRule(limit=120, window_seconds=60, key_prefix="files:read")
_prompts = RateLimitRule(limit=60, window_seconds=3600, key_prefix="prompts:write")

router.add_route(
    "/api/pdfs/upload-url",
    create_api_handler(create_upload_url, body_model=UploadUrlRequest, rate_limit=_uploads),
    methods=["POST"],
)
router.add_route(
    "/api/pdfs/download-url",
    create_api_handler(create_download_url, query_model=KeyQuery, rate_limit=_reads),
    methods=["GET"],
)
router.add_route(
    "/api/pdfs",
    create_api_handler(delete_file, query_model=KeyQuery),
    methods=["DELETE"],
)
router.add_route(
    "/api/prompts",
    create_api_handler(save_prompt, body_model=PromptRequest, rate_limit=_prompts),
    methods=["POST"],
)
router.add_route(
    "/api/prompts",
    create_api_handler(read_prompt, query_model=KeyQuery, rate_limit=_reads),
    methods=["GET"],
)
router.add_route(
    "/api/profile/image-upload-url",
    create_api_handler(create_profile_image_url, body_model=ProfileImageRequest, rate_limit=_uploads),
    methods=["POST"],
)

"""Environment-aware S3 operations.

Every operation takes the environment explicitly; there is no ambient mode.
The key's prefix is asserted before any I/O, and client errors propagate
unchanged. No timeouts or retries here: callers own that policy.
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Callable

from vulniq.environment import Environment
from vulniq.storage.config import assert_key_prefix, get_s3_config

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600  # seconds


async def _run(fn: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking boto3 call in the default executor."""
    return await asyncio.get_event_loop().run_in_executor(None, partial(fn, *args, **kwargs))


async def get_presigned_upload_url(
    env: Environment | str,
    key: str,
    content_type: str = "application/pdf",
    expires_in: int = DEFAULT_EXPIRES_IN,
) -> str:
    assert_key_prefix(env, key)
    cfg = get_s3_config(env)
    return await _run(
        cfg.client.generate_presigned_url,
        "put_object",
        Params={"Bucket": cfg.bucket, "Key": key, "ContentType": content_type},
        ExpiresIn=expires_in,
    )


async def get_presigned_download_url(
    env: Environment | str,
    key: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
) -> str:
    assert_key_prefix(env, key)
    cfg = get_s3_config(env)
    return await _run(
        cfg.client.generate_presigned_url,
        "get_object",
        Params={"Bucket": cfg.bucket, "Key": key},
        ExpiresIn=expires_in,
    )


async def delete_from_s3(env: Environment | str, key: str) -> None:
    assert_key_prefix(env, key)
    cfg = get_s3_config(env)
    await _run(cfg.client.delete_object, Bucket=cfg.bucket, Key=key)
    logger.info("Deleted s3://%s/%s", cfg.bucket, key)


async def upload_text_to_s3(env: Environment | str, key: str, text: str) -> None:
    assert_key_prefix(env, key)
    cfg = get_s3_config(env)
    await _run(
        cfg.client.put_object,
        Bucket=cfg.bucket,
        Key=key,
        Body=text.encode("utf-8"),
        ContentType="text/plain",
    )


async def download_text_from_s3(env: Environment | str, key: str) -> str:
    assert_key_prefix(env, key)
    cfg = get_s3_config(env)
    response = await _run(cfg.client.get_object, Bucket=cfg.bucket, Key=key)
    body = await _run(response["Body"].read)
    return body.decode("utf-8")

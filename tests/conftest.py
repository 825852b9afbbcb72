"""Shared test fixtures — fake S3 client, fresh limiter and breaker per test."""
from __future__ import annotations

import os

# Must be in place before config.settings is imported
os.environ.setdefault("JWT_SECRET", "test-secret")

from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from config.settings import settings
from vulniq.api.main import app  # noqa: E402
from vulniq.api.files import storage_breaker
from vulniq.auth import create_access_token
from vulniq.services.rate_limit import reset_store
from vulniq.storage.config import ClientRegistry, set_registry

PRESIGNED_URL = "https://test-bucket.s3.amazonaws.com/signed?X-Amz-Signature=abc"


@pytest.fixture(autouse=True)
def fresh_state():
    """Reset rate limiter and storage breaker between tests."""
    reset_store()
    storage_breaker.reset()
    yield
    reset_store()
    storage_breaker.reset()


@pytest.fixture
def s3_client(monkeypatch):
    """MagicMock standing in for the boto3 client of every environment."""
    monkeypatch.setattr(settings, "AWS_S3_BUCKET_NAME", "test-bucket")
    monkeypatch.setattr(settings, "DEMO_S3_BUCKET_NAME", "test-demo-bucket")
    client = MagicMock(name="s3")
    client.generate_presigned_url.return_value = PRESIGNED_URL
    built: list = []

    def factory(env, creds):
        built.append((env, creds))
        return client

    client.built = built
    old = set_registry(ClientRegistry(factory=factory))
    yield client
    set_registry(old)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}


@pytest.fixture
def make_request():
    """Build a bare Starlette Request (headers, method, body, query)."""

    def _make(method="GET", path="/", headers=None, body=b"", query_string=b""):
        raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "headers": raw,
            "query_string": query_string,
            "path_params": {},
        }

        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return _make


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

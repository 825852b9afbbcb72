"""Tests for the environment-aware S3 operations (boto3 client mocked)."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from vulniq.environment import Environment
from vulniq.errors import PrefixIsolationError
from vulniq.storage import gateway


@pytest.mark.asyncio
async def test_presigned_upload_url(s3_client):
    url = await gateway.get_presigned_upload_url("prod", "users/1/a.pdf")
    assert url == s3_client.generate_presigned_url.return_value
    s3_client.generate_presigned_url.assert_called_once_with(
        "put_object",
        Params={"Bucket": "test-bucket", "Key": "users/1/a.pdf", "ContentType": "application/pdf"},
        ExpiresIn=3600,
    )


@pytest.mark.asyncio
async def test_presigned_download_url_uses_demo_bucket(s3_client):
    await gateway.get_presigned_download_url(Environment.DEMO, "demo/users/1/a.pdf", expires_in=60)
    s3_client.generate_presigned_url.assert_called_once_with(
        "get_object",
        Params={"Bucket": "test-demo-bucket", "Key": "demo/users/1/a.pdf"},
        ExpiresIn=60,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("operation,args", [
    (gateway.get_presigned_upload_url, ()),
    (gateway.get_presigned_download_url, ()),
    (gateway.delete_from_s3, ()),
    (gateway.upload_text_to_s3, ("text",)),
    (gateway.download_text_from_s3, ()),
])
async def test_cross_environment_key_never_reaches_client(s3_client, operation, args):
    with pytest.raises(PrefixIsolationError):
        await operation("demo", "users/1/a.pdf", *args)
    with pytest.raises(PrefixIsolationError):
        await operation("prod", "demo/users/1/a.pdf", *args)
    assert s3_client.method_calls == []
    assert s3_client.built == []


@pytest.mark.asyncio
async def test_delete(s3_client):
    await gateway.delete_from_s3("prod", "users/1/a.pdf")
    s3_client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="users/1/a.pdf")


@pytest.mark.asyncio
async def test_upload_text(s3_client):
    await gateway.upload_text_to_s3("prod", "users/1/prompts/x/1.txt", "héllo")
    s3_client.put_object.assert_called_once_with(
        Bucket="test-bucket",
        Key="users/1/prompts/x/1.txt",
        Body="héllo".encode("utf-8"),
        ContentType="text/plain",
    )


@pytest.mark.asyncio
async def test_download_text(s3_client):
    body = MagicMock()
    body.read.return_value = "héllo".encode("utf-8")
    s3_client.get_object.return_value = {"Body": body}
    text = await gateway.download_text_from_s3("demo", "demo/users/1/prompts/x/1.txt")
    assert text == "héllo"
    s3_client.get_object.assert_called_once_with(Bucket="test-demo-bucket", Key="demo/users/1/prompts/x/1.txt")


@pytest.mark.asyncio
async def test_client_errors_propagate(s3_client):
    s3_client.delete_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
    )
    with pytest.raises(ClientError):
        await gateway.delete_from_s3("prod", "users/1/a.pdf")

"""Tests for response envelopes and handler error translation."""
from __future__ import annotations

import json
import logging
import uuid

import pytest

from vulniq.api.responses import (
    ApiErrors,
    error_response,
    generate_request_id,
    handle_handler_error,
    success_response,
    validation_error_response,
    with_api_handler,
)
from vulniq.errors import CircuitOpenError
from vulniq.logging_config import request_id_var
from vulniq.security.headers import SECURITY_HEADERS


def _body(resp):
    return json.loads(resp.body)


@pytest.fixture
def development(monkeypatch):
    monkeypatch.delenv("NODE_ENV", raising=False)
    monkeypatch.setenv("APP_ENV", "development")


@pytest.fixture
def production(monkeypatch):
    monkeypatch.delenv("NODE_ENV", raising=False)
    monkeypatch.setenv("APP_ENV", "production")


def test_request_id_is_uuid():
    rid = generate_request_id()
    assert str(uuid.UUID(rid)) == rid
    assert generate_request_id() != rid


def test_success_envelope():
    resp = success_response({"a": 1}, request_id="r1", meta={"page": 1})
    assert resp.status_code == 200
    assert _body(resp) == {"success": True, "data": {"a": 1}, "meta": {"page": 1}, "requestId": "r1"}
    assert resp.headers["x-request-id"] == "r1"


def test_success_without_data_omits_key():
    body = _body(success_response())
    assert body == {"success": True}


@pytest.mark.parametrize("data", [[], 0, "", False, {}])
def test_success_keeps_falsy_data(data):
    assert _body(success_response(data))["data"] == data


def test_success_carries_security_headers():
    resp = success_response({"ok": True})
    for name, value in SECURITY_HEADERS.items():
        assert resp.headers[name] == value


def test_caller_headers_win():
    resp = success_response(None, headers={"Cache-Control": "private"}, status=201)
    assert resp.status_code == 201
    assert resp.headers["cache-control"] == "private"


def test_error_envelope():
    resp = error_response("Nope", status=418, code="TEAPOT", request_id="r2")
    assert resp.status_code == 418
    assert _body(resp) == {"success": False, "error": "Nope", "code": "TEAPOT", "requestId": "r2"}
    assert resp.headers["x-content-type-options"] == "nosniff"


def test_details_hidden_in_production(production):
    body = _body(error_response("boom", details={"secret": "x"}))
    assert "details" not in body


def test_details_shown_in_development(development):
    body = _body(error_response("boom", details={"secret": "x"}))
    assert body["details"]["secret"] == "x"


def test_node_env_is_honoured(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("NODE_ENV", "development")
    assert _body(error_response("boom", details={"secret": "x"}))["details"] == {"secret": "x"}
    monkeypatch.setenv("NODE_ENV", "production")
    assert "details" not in _body(error_response("boom", details={"secret": "x"}))


def test_node_env_production_overrides_app_env(monkeypatch):
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("NODE_ENV", "production")
    assert "details" not in _body(error_response("boom", details={"secret": "x"}))
    body = _body(handle_handler_error(ValueError("boom"), "r8"))
    assert body["error"] == "An unexpected error occurred"
    assert "details" not in body


def test_no_details_option_means_no_details_key(development):
    resp = error_response("boom", status=500)
    assert "details" not in _body(resp)


@pytest.mark.parametrize("factory,status,code", [
    (ApiErrors.bad_request, 400, "BAD_REQUEST"),
    (ApiErrors.unauthorized, 401, "UNAUTHORIZED"),
    (ApiErrors.forbidden, 403, "FORBIDDEN"),
    (ApiErrors.demo_blocked, 403, "DEMO_MODE_BLOCKED"),
    (ApiErrors.not_found, 404, "NOT_FOUND"),
    (ApiErrors.conflict, 409, "CONFLICT"),
    (ApiErrors.validation_error, 422, "VALIDATION_ERROR"),
    (ApiErrors.rate_limited, 429, "RATE_LIMITED"),
    (ApiErrors.internal_error, 500, "INTERNAL_ERROR"),
    (ApiErrors.service_unavailable, 503, "SERVICE_UNAVAILABLE"),
])
def test_api_errors_fixed_status_and_code(factory, status, code):
    resp = factory()
    body = _body(resp)
    assert resp.status_code == status
    assert body["code"] == code
    assert body["success"] is False
    assert body["error"]


def test_not_found_names_resource():
    assert _body(ApiErrors.not_found("Document"))["error"] == "Document not found"


def test_rate_limited_retry_after_seconds():
    resp = ApiErrors.rate_limited(retry_after=42)
    assert resp.headers["retry-after"] == "42"


def test_service_unavailable_rounds_ms_up():
    assert ApiErrors.service_unavailable(retry_after=1500).headers["retry-after"] == "2"
    assert ApiErrors.service_unavailable(retry_after=30000).headers["retry-after"] == "30"
    assert "retry-after" not in ApiErrors.service_unavailable().headers


def test_internal_error_default_message():
    assert _body(ApiErrors.internal_error())["error"] == "An unexpected error occurred"


def test_validation_error_response_fields():
    errors = [{"loc": ("body", "fileName"), "msg": "Field required", "type": "missing"}]
    resp = validation_error_response(errors, request_id="r3")
    body = _body(resp)
    assert resp.status_code == 400
    assert body["code"] == "VALIDATION_ERROR"
    assert body["fields"] == [{"field": "body.fileName", "message": "Field required", "code": "missing"}]


def test_handle_handler_error_hides_message_in_production(production, caplog):
    with caplog.at_level(logging.ERROR, logger="vulniq.api.responses"):
        resp = handle_handler_error(ValueError("db password is hunter2"), "r4")
    body = _body(resp)
    assert resp.status_code == 500
    assert body["error"] == "An unexpected error occurred"
    assert "details" not in body
    assert "hunter2" not in resp.body.decode()
    assert "[API Error] RequestId: r4" in caplog.text


def test_handle_handler_error_shows_stack_in_development(development):
    body = _body(handle_handler_error(ValueError("boom"), "r5"))
    assert body["error"] == "boom"
    assert "ValueError" in body["details"]["stack"]


def test_circuit_open_becomes_503():
    resp = handle_handler_error(CircuitOpenError("s3", retry_after=4200), "r6")
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "5"
    assert _body(resp)["code"] == "SERVICE_UNAVAILABLE"


def test_circuit_open_default_retry_after():
    class Tripped(Exception):
        code = "CIRCUIT_OPEN"

    resp = handle_handler_error(Tripped(), "r7")
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "30"


@pytest.mark.asyncio
async def test_with_api_handler_passes_request_id(make_request):
    seen = {}

    async def handler(request, ctx):
        seen["ctx"] = ctx
        seen["var"] = request_id_var.get()
        return success_response({"ok": True}, request_id=ctx.request_id)

    resp = await with_api_handler(handler)(make_request(query_string=b"page=2"))
    assert resp.status_code == 200
    assert seen["ctx"].request_id == seen["var"] == _body(resp)["requestId"]
    assert seen["ctx"].query == {"page": "2"}
    assert request_id_var.get() == ""


@pytest.mark.asyncio
async def test_with_api_handler_without_request_id(make_request):
    async def handler(request, ctx):
        return success_response({"rid": ctx.request_id})

    resp = await with_api_handler(handler, include_request_id=False)(make_request())
    assert _body(resp)["data"] == {"rid": None}


@pytest.mark.asyncio
async def test_with_api_handler_translates_errors(make_request, production):
    async def handler(request, ctx):
        raise RuntimeError("internal detail")

    resp = await with_api_handler(handler)(make_request())
    body = _body(resp)
    assert resp.status_code == 500
    assert body["code"] == "INTERNAL_ERROR"
    assert "internal detail" not in resp.body.decode()
    assert body["requestId"]

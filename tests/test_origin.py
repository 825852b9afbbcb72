"""Tests for the origin/CSRF guard and client IP resolution."""
from __future__ import annotations

import pytest

from config.settings import settings
from vulniq.security.origin import get_client_ip, is_same_origin, requires_csrf_protection
from vulniq.security.request import HeaderRequest


def test_no_origin_is_allowed():
    assert is_same_origin(HeaderRequest({"host": "app.example"})) is True


def test_origin_without_host_is_rejected():
    assert is_same_origin(HeaderRequest({"origin": "https://app.example"})) is False


def test_mismatched_host_is_rejected():
    req = HeaderRequest({"origin": "https://evil.example", "host": "app.example"})
    assert is_same_origin(req) is False


def test_matching_host_is_allowed():
    req = HeaderRequest({"origin": "https://app.example", "host": "app.example"})
    assert is_same_origin(req) is True


@pytest.mark.parametrize("origin,host,expected", [
    ("http://localhost:3000", "localhost:3000", True),
    ("http://localhost:3000", "localhost", False),
    ("https://app.example:443", "app.example", True),
    ("https://APP.example", "app.example", True),
    ("https://app.example.evil.test", "app.example", False),
    ("null", "app.example", False),
    ("not a url", "app.example", False),
])
def test_origin_host_comparison(origin, host, expected):
    assert is_same_origin(HeaderRequest({"origin": origin, "host": host})) is expected


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "post"])
def test_state_changing_methods_need_csrf(method):
    assert requires_csrf_protection(method) is True


@pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS", ""])
def test_safe_methods_are_exempt(method):
    assert requires_csrf_protection(method) is False


def test_client_ip_alb_takes_last_hop(monkeypatch):
    monkeypatch.setattr(settings, "PROXY_TYPE", "aws-alb")
    req = HeaderRequest({"x-forwarded-for": "6.6.6.6, 203.0.113.9"})
    assert get_client_ip(req) == "203.0.113.9"


@pytest.mark.parametrize("proxy", ["cloudflare", "nginx"])
def test_client_ip_other_proxies_take_first_hop(monkeypatch, proxy):
    monkeypatch.setattr(settings, "PROXY_TYPE", proxy)
    req = HeaderRequest({"x-forwarded-for": "203.0.113.9, 10.0.0.1"})
    assert get_client_ip(req) == "203.0.113.9"


def test_client_ip_falls_back_to_real_ip():
    assert get_client_ip(HeaderRequest({"x-real-ip": "198.51.100.7"})) == "198.51.100.7"


def test_client_ip_unknown():
    assert get_client_ip(HeaderRequest()) == "unknown"
    assert get_client_ip(HeaderRequest({"x-forwarded-for": " , "})) == "unknown"

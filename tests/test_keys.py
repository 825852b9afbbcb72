"""Tests for storage key validation."""
from __future__ import annotations

import pytest

from vulniq.security.keys import (
    ACCESS_DENIED,
    INVALID_KEY,
    INVALID_KEY_PATH,
    validate_s3_key,
)


def test_traversal_is_rejected_before_prefix_check():
    result = validate_s3_key("users/42/../secret.txt", required_prefix="users/42/")
    assert result.ok is False
    assert result.error == INVALID_KEY_PATH


def test_foreign_prefix_is_access_denied():
    result = validate_s3_key("users/other/x.png", required_prefix="users/42/")
    assert result.ok is False
    assert result.error == ACCESS_DENIED


@pytest.mark.parametrize("key", [
    "users/42/report.pdf",
    "users/42/use-cases/case_1/1700000000000-my_file.pdf",
    "users/42/a",
    "users/42/" + "x" * 491,
])
def test_valid_keys(key):
    result = validate_s3_key(key, required_prefix="users/42/")
    assert result.ok is True
    assert result.error is None
    assert bool(result) is True


@pytest.mark.parametrize("key,error", [
    ("", INVALID_KEY),
    (None, INVALID_KEY),
    (42, INVALID_KEY),
    ("x" * 501, INVALID_KEY),
    ("users/42/a\\b", INVALID_KEY_PATH),
    ("users/42//b", INVALID_KEY_PATH),
    ("users/42/..", INVALID_KEY_PATH),
    ("users/42/my file.pdf", INVALID_KEY),
    ("users/42/%2e%2e/x", INVALID_KEY),
    ("users/42/résumé.pdf", INVALID_KEY),
    ("users/42/x.pdf\n", INVALID_KEY),
])
def test_invalid_keys(key, error):
    result = validate_s3_key(key)
    assert result.ok is False
    assert result.error == error
    assert not result


def test_max_length_is_configurable():
    assert validate_s3_key("abcdef", max_len=5).error == INVALID_KEY
    assert validate_s3_key("abcde", max_len=5).ok is True


def test_prefix_is_case_sensitive():
    assert validate_s3_key("Users/42/x", required_prefix="users/42/").error == ACCESS_DENIED


def test_no_prefix_required():
    assert validate_s3_key("anything/goes.txt").ok is True

"""Storage key generators.

Layout (``<ms>`` is a millisecond timestamp):

    users/<user>/use-cases/<case>/<ms>-<file>            prod
    demo/users/<user>/use-cases/<case>/<ms>-<file>       demo

The demo layout mirrors production one level down so path parsing stays the
same in both environments while the leading prefix stays unambiguous.
"""
from __future__ import annotations

import re
import time

from vulniq.environment import Environment
from vulniq.storage.config import prefix_for

_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_UNSAFE_IMAGE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _user_root(env: Environment | str, user_id: str) -> str:
    env = Environment.parse(env)
    prefix = prefix_for(env)
    # prod prefix is already "users/"
    if env is Environment.DEMO:
        return f"{prefix}users/{user_id}"
    return f"{prefix}{user_id}"


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_FILE_CHARS.sub("_", file_name)


def generate_s3_key(env: Environment | str, user_id: str, use_case_id: str, file_name: str) -> str:
    """Key for an uploaded use-case document."""
    return f"{_user_root(env, user_id)}/use-cases/{use_case_id}/{_timestamp_ms()}-{sanitize_file_name(file_name)}"


def generate_prompt_s3_key(env: Environment | str, user_id: str, agent: str) -> str:
    return f"{_user_root(env, user_id)}/prompts/{agent}/{_timestamp_ms()}.txt"


def generate_profile_image_s3_key(env: Environment | str, user_id: str, file_name: str, ext: str) -> str:
    sanitized = _UNSAFE_IMAGE_CHARS.sub("_", file_name) or "image"
    return f"{_user_root(env, user_id)}/profile-images/{_timestamp_ms()}-{sanitized}.{ext}"

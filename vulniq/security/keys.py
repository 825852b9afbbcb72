"""Strict allow-list validation for storage object keys."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

DEFAULT_MAX_KEY_LENGTH = 500

# No spaces, no percent-encoding, no Unicode
_KEY_CHARS = re.compile(r"[a-zA-Z0-9/_\-.]+")
_TRAVERSAL_SEQUENCES = ("..", "\\", "//")

INVALID_KEY = "Invalid s3Key"
INVALID_KEY_PATH = "Invalid s3Key path"
ACCESS_DENIED = "Access denied"

# What untrusted clients are told for any rejection, whatever the reason
CLIENT_KEY_ERROR = "Invalid file reference"


@dataclass(frozen=True)
class KeyValidation:
    ok: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


_VALID = KeyValidation(ok=True)


def validate_s3_key(
    key: Any,
    required_prefix: Optional[str] = None,
    max_len: int = DEFAULT_MAX_KEY_LENGTH,
) -> KeyValidation:
    """Validate a storage key, stopping at the first failed check.

    1. non-empty string no longer than ``max_len``    -> "Invalid s3Key"
    2. no ``..``, backslash or ``//``                 -> "Invalid s3Key path"
    3. starts with ``required_prefix`` (if given)     -> "Access denied"
    4. only ``[a-zA-Z0-9/_-.]``                       -> "Invalid s3Key"

    The prefix failure is worded differently so logs can tell authorization
    failures from malformed input. Do not forward ``error`` to clients; use
    CLIENT_KEY_ERROR. Keys are checked exactly as given: no decoding, no
    normalisation.
    """
    if not isinstance(key, str) or not 0 < len(key) <= max_len:
        return KeyValidation(ok=False, error=INVALID_KEY)
    if any(seq in key for seq in _TRAVERSAL_SEQUENCES):
        return KeyValidation(ok=False, error=INVALID_KEY_PATH)
    if required_prefix and not key.startswith(required_prefix):
        return KeyValidation(ok=False, error=ACCESS_DENIED)
    if not _KEY_CHARS.fullmatch(key):
        return KeyValidation(ok=False, error=INVALID_KEY)
    return _VALID

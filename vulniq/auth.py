"""Session tokens — the opaque authentication collaborator of the API layer.

Routes only ever need "which user is this, if any". Tokens are compact
HS256 JWTs signed with JWT_SECRET.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings
from vulniq.security.request import HasHeaders

# ---- JWT (minimal, no PyJWT dependency) ----

_JWT_ALGO = "HS256"
_ACCESS_TTL = 3600 * 24  # 1 day


def _secret() -> bytes:
    return settings.JWT_SECRET.encode()


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)


def _sign(payload: dict) -> str:
    header = _b64url(json.dumps({"alg": _JWT_ALGO, "typ": "JWT"}).encode())
    body = _b64url(json.dumps(payload).encode())
    sig_input = f"{header}.{body}".encode()
    sig = hmac.new(_secret(), sig_input, hashlib.sha256).digest()
    return f"{header}.{body}.{_b64url(sig)}"


def verify_token(token: str) -> Optional[dict]:
    """Payload of a valid, unexpired access token; None for anything else."""
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return None
        sig_input = f"{parts[0]}.{parts[1]}".encode()
        expected = hmac.new(_secret(), sig_input, hashlib.sha256).digest()
        actual = _b64url_decode(parts[2])
        if not hmac.compare_digest(expected, actual):
            return None
        payload = json.loads(_b64url_decode(parts[1]))
        if payload.get("exp", 0) < time.time():
            return None
        if payload.get("type") != "access":
            return None
        return payload
    except (ValueError, TypeError, AttributeError):
        return None


def create_access_token(user_id: str, ttl: int = _ACCESS_TTL) -> str:
    now = int(time.time())
    return _sign({
        "sub": user_id,
        "iat": now,
        "exp": now + ttl,
        "type": "access",
        "jti": uuid.uuid4().hex[:8],
    })


def get_request_user_id(request: HasHeaders) -> Optional[str]:
    """User id from an ``Authorization: Bearer`` header, or None."""
    auth = request.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    payload = verify_token(token.strip())
    return payload.get("sub") if payload else None


# ---- FastAPI dependency ----

_bearer = HTTPBearer(auto_error=False)


async def require_user_id(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    payload = verify_token(creds.credentials) if creds else None
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return payload["sub"]

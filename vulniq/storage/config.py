"""Environment-scoped S3 configuration.

Isolation rules:
1. Demo uses its own bucket (DEMO_S3_BUCKET_NAME) or, when that is unset,
   the production bucket with the hard-separated "demo/" prefix.
2. Every key used in an environment must start with that environment's prefix.
3. Production code paths never see the demo bucket/prefix and vice versa.

IAM should back this up outside the code: the demo task role limited to the
demo bucket or demo/* prefix, the prod role denied on them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Optional

import boto3

from config.settings import settings
from vulniq.environment import Environment
from vulniq.errors import PrefixIsolationError

logger = logging.getLogger(__name__)

PROD_PREFIX = "users/"
DEMO_PREFIX = "demo/"

_PREFIXES = {
    Environment.PROD: PROD_PREFIX,
    Environment.DEMO: DEMO_PREFIX,
}


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str
    source: str  # env whose variables supplied them: "demo" or "prod"


@dataclass(frozen=True)
class S3Config:
    env: Environment
    bucket: str
    prefix: str
    client: Any


def bucket_for(env: Environment) -> str:
    if env is Environment.DEMO:
        return settings.DEMO_S3_BUCKET_NAME or settings.AWS_S3_BUCKET_NAME
    return settings.AWS_S3_BUCKET_NAME


def prefix_for(env: Environment | str) -> str:
    return _PREFIXES[Environment.parse(env)]


def resolve_credentials(env: Environment) -> Optional[Credentials]:
    """Explicit credential chain for ``env``.

    demo: DEMO_AWS_* -> AWS_* (shared with production) -> default chain
    prod: AWS_* -> default chain (IAM role)

    None means "let boto3 use its default chain".
    """
    if env is Environment.DEMO and settings.DEMO_AWS_ACCESS_KEY_ID:
        return Credentials(settings.DEMO_AWS_ACCESS_KEY_ID, settings.DEMO_AWS_SECRET_ACCESS_KEY, "demo")
    if settings.AWS_ACCESS_KEY_ID:
        return Credentials(settings.AWS_ACCESS_KEY_ID, settings.AWS_SECRET_ACCESS_KEY, "prod")
    return None


def demo_shares_prod_credentials() -> bool:
    creds = resolve_credentials(Environment.DEMO)
    return creds is not None and creds.source == "prod"


def _build_client(env: Environment, creds: Optional[Credentials]) -> Any:
    kwargs: dict[str, Any] = {"region_name": settings.AWS_REGION}
    if creds:
        kwargs["aws_access_key_id"] = creds.access_key_id
        kwargs["aws_secret_access_key"] = creds.secret_access_key
    return boto3.client("s3", **kwargs)


class ClientRegistry:
    """One lazily-built S3 client per environment, shared for the process lifetime.

    boto3 clients are safe to share between threads once built.
    """

    def __init__(self, factory: Callable[[Environment, Optional[Credentials]], Any] = _build_client):
        self._factory = factory
        self._clients: dict[Environment, Any] = {}
        self._lock = Lock()

    def get(self, env: Environment) -> Any:
        client = self._clients.get(env)
        if client is not None:
            return client
        with self._lock:
            client = self._clients.get(env)
            if client is None:
                creds = resolve_credentials(env)
                if env is Environment.DEMO and creds is not None and creds.source == "prod":
                    logger.warning(
                        "Demo S3 client is using shared production credentials; "
                        "set DEMO_AWS_ACCESS_KEY_ID to restore credential isolation"
                    )
                client = self._factory(env, creds)
                self._clients[env] = client
                logger.info("S3 client ready for env=%s", env.value)
            return client

    def clear(self) -> None:
        with self._lock:
            self._clients.clear()


_registry = ClientRegistry()


def get_registry() -> ClientRegistry:
    return _registry


def set_registry(registry: ClientRegistry) -> ClientRegistry:
    """Swap the process registry (tests, alternative backends). Returns the old one."""
    global _registry
    old, _registry = _registry, registry
    return old


def get_s3_config(env: Environment | str) -> S3Config:
    """Client, bucket and mandatory key prefix for ``env``."""
    env = Environment.parse(env)
    return S3Config(
        env=env,
        bucket=bucket_for(env),
        prefix=_PREFIXES[env],
        client=_registry.get(env),
    )


def assert_key_prefix(env: Environment | str, key: str) -> None:
    """Raise PrefixIsolationError unless ``key`` lives under ``env``'s prefix."""
    env = Environment.parse(env)
    prefix = _PREFIXES[env]
    if not isinstance(key, str) or not key.startswith(prefix):
        raise PrefixIsolationError(env.value, str(key), prefix)

"""App settings — loaded from environment."""
from __future__ import annotations

import os
from dotenv import load_dotenv

load_dotenv()


def _app_env() -> str:
    # NODE_ENV wins when set; APP_ENV only fills in for an unset NODE_ENV
    return (os.getenv("NODE_ENV") or os.getenv("APP_ENV") or "production").lower()


def is_development() -> bool:
    """True only when the live environment is explicitly 'development'.

    Read on every call: error details must follow the current value, not the
    value at import time. ``NODE_ENV=production`` disables details even if
    ``APP_ENV=development``.
    """
    return _app_env() == "development"


class Settings:
    # Runtime environment ("development", "test", "production")
    APP_ENV = _app_env()

    # API
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "8000"))

    # Object storage
    AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
    AWS_S3_BUCKET_NAME = os.getenv("AWS_S3_BUCKET_NAME", "amz-s3-pdfs-gp")
    # Empty -> demo shares the production bucket, isolated by prefix only
    DEMO_S3_BUCKET_NAME = os.getenv("DEMO_S3_BUCKET_NAME", "")

    AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
    AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    DEMO_AWS_ACCESS_KEY_ID = os.getenv("DEMO_AWS_ACCESS_KEY_ID", "")
    DEMO_AWS_SECRET_ACCESS_KEY = os.getenv("DEMO_AWS_SECRET_ACCESS_KEY", "")

    # Reverse proxy in front of the app: "aws-alb", "cloudflare" or "nginx"
    PROXY_TYPE = os.getenv("PROXY_TYPE", "aws-alb")

    # Auth
    JWT_SECRET = os.getenv("JWT_SECRET", "vulniq-dev-secret-change-in-prod")

    # CORS origins (comma-separated, or * for dev)
    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")
    ]

    # Observability
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

    # Logging
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()

"""Startup validation — catch misconfigurations before the app serves traffic."""
from __future__ import annotations

import logging
import sys

from config.settings import is_development, settings
from vulniq.storage.config import demo_shares_prod_credentials

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "vulniq-dev-secret-change-in-prod"


def validate_settings() -> list[str]:
    """Validate configuration. Returns list of warnings (empty = all good).

    Raises SystemExit for critical misconfigurations outside development.
    """
    warnings: list[str] = []
    dev = is_development()

    # Critical: JWT secret must be changed outside development
    if not dev and settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        logger.critical("JWT_SECRET is still the default! Set a real secret for production.")
        sys.exit(1)

    if not settings.DEMO_S3_BUCKET_NAME or settings.DEMO_S3_BUCKET_NAME == settings.AWS_S3_BUCKET_NAME:
        warnings.append(
            "DEMO_S3_BUCKET_NAME not set — demo storage shares the production bucket (prefix isolation only)"
        )

    if demo_shares_prod_credentials():
        warnings.append(
            "DEMO_AWS_ACCESS_KEY_ID not set — demo storage uses production credentials"
        )

    if not dev and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to * — restrict in production")

    for w in warnings:
        logger.warning("⚠️  %s", w)

    if not warnings:
        logger.info("✅ All startup checks passed")

    return warnings

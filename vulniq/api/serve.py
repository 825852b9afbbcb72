"""Run the API with uvicorn: ``vulniq-api`` or ``python -m vulniq.api.serve``."""
from __future__ import annotations

import uvicorn

from config.settings import settings


def main() -> None:
    uvicorn.run(
        "vulniq.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,  # keep setup_logging()'s handlers
    )


if __name__ == "__main__":
    main()

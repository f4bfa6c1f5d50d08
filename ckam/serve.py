"""
Run the account API with uvicorn:

  python -m ckam.serve

Host, port and environment come from HOST, PORT and APP_ENV (or .env).
"""

import logging
import sys

import uvicorn

from ckam.core.config import get_settings


def main() -> int:
    """Configure logging and serve ckam.main:app until interrupted."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting %s on port %s (environment=%s, accounts_file=%s)",
        settings.SERVICE_NAME,
        settings.PORT,
        settings.APP_ENV,
        settings.ACCOUNTS_FILE,
    )
    uvicorn.run(
        "ckam.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

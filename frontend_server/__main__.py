"""Entry point: ``python -m frontend_server`` or ``frontend-server``."""

import logging
import sys

import uvicorn

from frontend_server.config import load_settings
from frontend_server.errors import FrontendServerError
from frontend_server.logs import configure_logging
from frontend_server.main import create_app

logger = logging.getLogger("frontend_server")


def main() -> None:
    configure_logging()
    try:
        settings = load_settings()
        configure_logging(settings.log_level)
        app = create_app(settings)
    except FrontendServerError as e:
        logger.critical(str(e))
        sys.exit(1)

    logger.info(f"Frontend server starting on {settings.listen_url}")
    logger.info(f"Proxying /api to {settings.backend_origin}")
    # uvicorn exits non-zero on its own if the port is already bound
    uvicorn.run(
        app,
        host=settings.FRONTEND_HOST,
        port=settings.FRONTEND_PORT,
        log_level=settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    main()

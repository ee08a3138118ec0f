# src/gitlab_profile_ui/__main__.py

import logging

import uvicorn

from .config import load_settings
from .main import create_app

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs full request URLs at INFO, and those carry the access token.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main() -> None:
    configure_logging()
    settings = load_settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL)

    app = create_app(settings)
    logger.info("Server running at http://localhost:%s", settings.PORT)
    logger.info("Press Ctrl-C to terminate...")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    main()

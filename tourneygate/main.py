"""TourneyGate entrypoint."""

import structlog
import uvicorn

from tourneygate.config.logging import setup_logging
from tourneygate.config.settings import get_settings
from tourneygate.storage.database import upgrade_schema

logger = structlog.get_logger(__name__)


def cli() -> None:
    """Serve the gated application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "tourneygate.web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


def migrate() -> None:
    """Bring the database schema up to the latest migration."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)
    upgrade_schema(settings.database_url)
    logger.info("schema_upgraded", revision="head")


if __name__ == "__main__":
    cli()

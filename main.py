import logging

from core.cache import get_cache
from core.config import configure_logging, settings
from core.database import engine, init_db

logger = logging.getLogger(__name__)


def startup():
    """Prepare logging, tables and a clean cache before serving requests."""
    configure_logging()
    logger.info("Starting MossBros workshop backend...")
    init_db(engine)
    # Cached payloads may predate the current schema
    get_cache().flush()
    logger.info(f"Application is ready (database: {settings.DATABASE_URL.split('://')[0]})")


if __name__ == "__main__":
    startup()

import logging
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./mossbros.db"  # Default to SQLite
    REDIS_URL: str = "redis://localhost:6379/0"
    LOG_LEVEL: str = "INFO"

    DEFAULT_PAGE_SIZE: int = 15
    MAX_PAGE_SIZE: int = 100

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
    }


settings = Settings()


def configure_logging(level: Optional[str] = None):
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

import importlib
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import settings

logger = logging.getLogger(__name__)

# The directory where all application folders are located
APPS_DIRECTORY = "apps"


def build_engine(database_url: str):
    # Handle SQLite special case
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False}
        )
    return create_engine(database_url)


engine = build_engine(settings.DATABASE_URL)

# Create a session local to the database
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# The base for all declarative SQLAlchemy models
Base = declarative_base()


# Dependency to get DB session (FastAPI style)
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def import_models():
    """Import every apps/<name>/models.py so all tables land on Base.metadata."""
    apps_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), APPS_DIRECTORY)
    for app_name in sorted(os.listdir(apps_path)):
        app_dir = os.path.join(apps_path, app_name)
        if os.path.isdir(app_dir) and not app_name.startswith(('_', '.')):
            if os.path.isfile(os.path.join(app_dir, "models.py")):
                importlib.import_module(f"{APPS_DIRECTORY}.{app_name}.models")


def init_db(bind=None):
    """Create all tables on the given engine (defaults to the configured one)."""
    import_models()
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ready")

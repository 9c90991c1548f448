import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from app.core.config import settings
from app.db.session import engine
from app.db.base import Base

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

def alembic_config(database_url: Optional[str] = None) -> Config:
    """Alembic config for this project, usable from any working directory"""
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url or settings.DATABASE_URL)
    return cfg

def init_db(database_url: Optional[str] = None) -> None:
    """
    Bring the schema to the latest Alembic revision.
    """
    try:
        command.upgrade(alembic_config(database_url), "head")
        logger.info("Database migrations applied successfully")
    except Exception as e:
        logger.error(f"Error applying database migrations: {e}")
        raise

def create_all_tables(bind=None) -> bool:
    """Create missing feed tables (users, posts, comments, likes) without Alembic"""
    bind = bind or engine
    try:
        before = set(inspect(bind).get_table_names())
        Base.metadata.create_all(bind=bind)
        created = set(inspect(bind).get_table_names()) - before
        if created:
            logger.info(f"Created tables: {', '.join(sorted(created))}")
        return True
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        return False

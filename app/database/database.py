import time

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings
from app.models.campaign import Base
from app.models import user  # noqa: F401  registers the users table on Base.metadata

settings = get_settings()
logger = structlog.get_logger(__name__)


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # Local development and tests; SQLite has no connection pool sizing
        return {"connect_args": {"check_same_thread": False}}
    # PostgreSQL via psycopg2
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def check_connection():
    """Run a trivial query; raises when the database is unreachable"""
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def init_db(attempts: int = 30, retry_delay: float = 2.0):
    """Wait for the database to accept connections, then create the moderation tables"""
    for attempt in range(1, attempts + 1):
        try:
            check_connection()
            break
        except Exception as e:
            if attempt == attempts:
                logger.error("Database unreachable, giving up", attempts=attempts, error=str(e))
                raise
            logger.warning("Database not ready yet", attempt=attempt, attempts=attempts, error=str(e))
            time.sleep(retry_delay)

    Base.metadata.create_all(bind=engine)
    logger.info("Campaign tables ready", tables=sorted(Base.metadata.tables))


def get_db():
    """Request-scoped session; rolled back when the request fails"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def close_db():
    engine.dispose()
    logger.info("Database engine disposed")

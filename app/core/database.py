"""
Database configuration and session management
"""
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    """Pool options for the configured backend"""
    if database_url.startswith("sqlite"):
        # SQLite (tests, local dev) shares a single connection
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": 10,        # Connection pool size
        "max_overflow": 20,     # Max connections above pool_size
    }


# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # Log SQL queries in debug mode
    **_engine_options(settings.DATABASE_URL)
)

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency function to get database session
    Use with context manager or try/finally
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Initialize database - create all tables
    """
    # Import models to register them with Base
    from app.models import land_listing  # noqa

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def drop_db():
    """
    Drop all database tables (use with caution!)
    """
    # Models must be registered or there is nothing to drop
    from app.models import land_listing  # noqa

    Base.metadata.drop_all(bind=engine)
    logger.warning("All database tables dropped")


def check_connection(bind=None) -> bool:
    """Run a trivial query to confirm the database is reachable"""
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database ping failed: %s", e)
        return False

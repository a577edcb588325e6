"""
Database connection and session management for the durable cache.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from deepticker.models import Base

logger = logging.getLogger(__name__)


def create_session_factory(database_url: str) -> sessionmaker:
    """Create the engine, make sure the schema exists, and return a session factory."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
        echo=False,
    )
    logger.info("Initializing cache database schema...")
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Session:
    """
    Context manager for database sessions.
    Commits on success, rolls back and re-raises on error.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./clinic.db"

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def _build_engine(database_url: str):
    url = make_url(database_url)

    if url.drivername.startswith("postgres"):
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,  # Detects and refreshes stale connections
            pool_recycle=3600,
            connect_args={"application_name": "clinic", "connect_timeout": 10},
            echo=False,  # Query timing is controlled by logging config
        )

    if url.drivername.startswith("sqlite"):
        if url.database in (None, "", ":memory:"):
            # Single shared in-memory database so DDL persists across sessions
            # and list queries running on worker threads see the same data.
            return create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url, echo=False, connect_args={"check_same_thread": False}
        )

    return create_engine(database_url, echo=False)


def get_engine():
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine
    global _database_url
    global _SessionLocal
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    # If engine not created yet or DATABASE_URL changed, (re)create engine
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
            _SessionLocal = None
        _engine = _build_engine(database_url)
        _database_url = database_url
        logger.info(
            "Database engine created",
            extra={"context": {"dialect": _engine.dialect.name}},
        )
    return _engine


def get_sessionmaker():
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )
    return _SessionLocal


def SessionLocal():
    """Return a new Session bound to the lazy engine."""
    return get_sessionmaker()()


def create_tables():
    """Create all tables in database using the lazy engine."""
    # Models must be imported so Base.metadata is populated
    from clinic.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def drop_tables():
    from clinic.db import base  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())

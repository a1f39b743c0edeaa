# equipment_tracker/database.py
"""
PostgreSQL database connection for the Equipment Tracker.

Uses SQLAlchemy 2.0 in synchronous mode: the store runs one blocking
statement at a time over a single long-lived connection.
"""
from __future__ import annotations
from typing import Iterator, Union
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, URL
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from equipment_tracker.config_io import DBConfig

# ============================================================================
# Base class for all ORM models
# ============================================================================

class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# ============================================================================
# Engine and Session Factory
# ============================================================================

def get_database_url(config: DBConfig) -> URL:
    """Build database URL from a parsed db_config.conf."""
    # URL.create escapes credentials, no string formatting involved
    return URL.create(
        "postgresql+psycopg2",
        username=config.user,
        password=config.password,
        host=config.host,
        port=config.port,
        database=config.dbname,
    )


def create_db_engine(url: Union[str, URL], echo: bool = False) -> Engine:
    """
    Engine holding a single connection for the life of the process.

    SQLite URLs (used by tests and local experiments) share one connection
    through StaticPool so in-memory databases survive between sessions.
    """
    url_str = url if isinstance(url, str) else url.render_as_string(hide_password=False)
    if url_str.startswith("sqlite"):
        return create_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        echo=echo,
        pool_size=1,
        max_overflow=0,
        pool_pre_ping=True,  # Verify the connection before use
    )


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    Transactional session: commits on success, rolls back on exception.

    Usage:
        with session_scope(factory) as db:
            db.add(row)
    """
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


# ============================================================================
# Health Check
# ============================================================================

def ping(engine: Engine) -> None:
    """Open a connection and run a trivial query. Raises on failure."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1")).scalar()


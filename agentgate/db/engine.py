"""SQLModel engine and session management.

This module provides:
- Engine creation for the execution history database
- A session context manager that rolls back on error
- Table initialization for development and tests
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from agentgate.config import DATABASE_URL


def create_db_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create an engine; SQLite URLs get thread-safe connect args."""
    url = url or DATABASE_URL
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise each thread sees its own empty database
        return create_engine(
            url, echo=echo, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    # pool_pre_ping ensures connections are valid before use
    return create_engine(url, echo=echo, pool_pre_ping=True, pool_size=5, max_overflow=10)


@contextmanager
def get_session(engine: Engine) -> Generator[Session, None, None]:
    """Get a database session.

    Usage:
        with get_session(engine) as session:
            session.add(row)
            session.commit()
    """
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise


def init_db(engine: Engine) -> None:
    """Create the execution history table if it doesn't exist."""
    from agentgate.db.models import Execution

    SQLModel.metadata.create_all(engine, tables=[Execution.__table__])


def drop_all_tables(engine: Engine) -> None:
    """Drop the execution history table. Data loss will occur."""
    from agentgate.db.models import Execution

    SQLModel.metadata.drop_all(engine, tables=[Execution.__table__])

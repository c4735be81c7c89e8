"""Run history database.

This module handles:
- The declarative base shared by the run history models
- Engine creation from ``Settings.db_url`` (SQLite databases get their
  directory created and foreign keys switched on)
- Session factories and a commit-or-rollback session scope
- Table creation
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from appbuild.config import get_settings


class Base(DeclarativeBase):
    """Declarative base of the run history models."""


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_url: str | None = None) -> Engine:
    """Create an engine for the run history database.

    Args:
        db_url: Database URL; defaults to ``Settings.db_url``.

    Returns:
        SQLAlchemy Engine.
    """
    url = make_url(db_url or get_settings().db_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=False)

    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Create a session factory bound to ``engine`` (or a new default engine)."""
    return sessionmaker(bind=engine or get_engine(), autoflush=False, expire_on_commit=False)


@contextmanager
def get_session(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """Open a session that commits on success and rolls back on error.

    Args:
        session_factory: Factory to open the session with; defaults to one
            bound to the configured database.

    Yields:
        Session.
    """
    factory = session_factory or get_session_factory()
    with factory() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


def create_all_tables(engine: Engine | None = None) -> None:
    """Create the run history tables if they do not exist."""
    # Models must be imported for their tables to be registered
    from appbuild.builds import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


__all__ = [
    "Base",
    "create_all_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
]

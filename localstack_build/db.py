"""SQLite storage for the build run history.

The history lives next to the other orchestrator state on the host and is
only ever written by one CLI process at a time.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

MEMORY_URL = "sqlite:///:memory:"


class Base(DeclarativeBase):
    """Declarative base for history tables."""


def get_engine(db_url: str) -> Engine:
    """Create an engine, making the parent directory of a SQLite file."""
    if db_url.startswith("sqlite:///") and db_url != MEMORY_URL:
        Path(db_url.removeprefix("sqlite:///")).parent.mkdir(
            parents=True, exist_ok=True
        )
    return create_engine(db_url)


def create_all_tables(engine: Engine) -> None:
    """Create the history tables if they do not exist yet.

    The schema is append-only, so there are no migrations.
    """
    from localstack_build.runs import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def open_history(db_url: str) -> sessionmaker[Session]:
    """Open (creating if needed) the history database.

    Args:
        db_url: SQLAlchemy URL, usually from BuildConfig.history_db_url.

    Returns:
        Session factory bound to the database.
    """
    engine = get_engine(db_url)
    create_all_tables(engine)
    return get_session_factory(engine)


@contextmanager
def get_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""
    with session_factory() as session, session.begin():
        yield session


__all__ = [
    "MEMORY_URL",
    "Base",
    "create_all_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "open_history",
]

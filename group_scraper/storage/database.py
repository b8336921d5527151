"""Database connection and session management."""

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base
from ..config import config


# Global engine and session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def create_db_engine(url: str) -> Engine:
    """Engine for ``url``; SQLite files get their directory created."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        path = url.split("///", 1)[-1]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=False, connect_args=connect_args)


def init_db(url: Optional[str] = None) -> sessionmaker:
    """Initialize the database, creating tables if they don't exist."""
    global _engine, _SessionLocal

    _engine = create_db_engine(url or config.database_url)
    Base.metadata.create_all(_engine)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _SessionLocal


def get_session_factory() -> sessionmaker:
    if _SessionLocal is None:
        init_db()
    return _SessionLocal


def get_session() -> Session:
    """Get a new database session."""
    return get_session_factory()()


@contextmanager
def session_scope(factory: Optional[Callable[[], Session]] = None) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = factory() if factory else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

"""
SQLite engine and session factory for the nocturne store.

One store is open per process. The CLI opens it from ``--db`` (or the default
file under ~/.nocturne), SqlDayRepository takes its sessions from the factory,
and cleanup_database() closes it so another file can be opened.
"""

import logging
import threading

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from nocturne.constants import DEFAULT_DATABASE_PATH
from nocturne.database.models import Base
from nocturne.exceptions import StoreFailure

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_init_lock = threading.Lock()


def _enable_foreign_keys(dbapi_conn: Any, connection_record: Any) -> None:
    # Cascades from days to sessions, signals and events rely on this
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_database(database_path: str | Path | None = None) -> None:
    """
    Open the store and create any missing tables.

    Opening is a no-op while a store is already open; call cleanup_database()
    first to switch to another file.

    Args:
        database_path: SQLite file, DEFAULT_DATABASE_PATH when omitted

    Raises:
        StoreFailure: If the file or its directory cannot be used
    """
    global _engine, _session_factory

    with _init_lock:
        if _engine is not None:
            return

        path = Path(database_path or DEFAULT_DATABASE_PATH).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreFailure(
                f"Cannot create database directory {path.parent}: {e}"
            ) from e

        engine = create_engine(
            f"sqlite:///{path}", connect_args={"check_same_thread": False}
        )
        event.listen(engine, "connect", _enable_foreign_keys)
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            engine.dispose()
            raise StoreFailure(f"Cannot open database {path}: {e}") from e

        _engine = engine
        _session_factory = sessionmaker(bind=engine)
        logger.debug(f"Opened database {path}")


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory of the open store.

    Raises:
        StoreFailure: If init_database() has not been called
    """
    if _session_factory is None:
        raise StoreFailure("Database not initialized. Call init_database() first.")
    return _session_factory


@contextmanager
def session_scope() -> Generator[Session]:
    """
    Provide a session that commits on success and rolls back on error.

    Used for profile bookkeeping and reporting; day reconciliation goes
    through SqlDayRepository transactions instead.
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def cleanup_database() -> None:
    """Dispose the engine and forget the open store."""
    global _engine, _session_factory

    with _init_lock:
        if _engine is not None:
            _engine.dispose()
            _engine = None
        _session_factory = None

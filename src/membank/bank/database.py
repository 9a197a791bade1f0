"""SQLite engine and session management for the memory bank.

The database file is only created on the first write. Until then its absence
is how callers tell that the bank has not been initialized.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from membank.bank.models import Base

logger = logging.getLogger(__name__)


def create_sqlite_engine(db_path: Path, echo: bool = False) -> Engine:
    """Create an engine for a file-backed SQLite database with foreign keys on."""
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, db_path: Path, echo: bool = False) -> None:
        self.db_path = Path(db_path)
        self._engine = create_sqlite_engine(self.db_path, echo=echo)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._schema_ready = False

    @property
    def engine(self) -> Engine:
        return self._engine

    def exists(self) -> bool:
        """Whether the database file is present on disk."""
        return self.db_path.exists()

    def ensure_schema(self) -> None:
        """Create the parent directory, the file and the tables. Idempotent."""
        if self._schema_ready and self.exists():
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(self._engine)
        self._schema_ready = True
        logger.info("Memory bank schema ready at %s", self.db_path)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()

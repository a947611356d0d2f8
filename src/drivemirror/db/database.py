"""Engine and session management for the local mirror."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from drivemirror.errors import ConflictError, DriveMirrorError, PersistenceError

from .base import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the SQLAlchemy engine and hands out short-lived sessions.

    Every gateway call runs in its own session/transaction, so single-row
    operations are atomic and gateways may be used from worker threads.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        connect_args: dict[str, Any] = {}
        is_sqlite = url.startswith("sqlite")
        if is_sqlite:
            connect_args = {"check_same_thread": False, "timeout": 30}

        self.url = url
        self.engine = create_engine(url, echo=echo, connect_args=connect_args)
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Yield a session that commits on success and rolls back on error.

        Raises:
            ConflictError: on unique/foreign-key violations.
            PersistenceError: on any other database failure.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except DriveMirrorError:
            session.rollback()
            raise
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError("Database constraint violated", cause=exc) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database operation failed: %s", exc)
            raise PersistenceError("Database operation failed", cause=exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

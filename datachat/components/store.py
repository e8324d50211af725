"""Relational store: a lock-guarded SQLAlchemy engine over one SQLite connection"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from datachat.components.errors import QueryExecutionFault

logger = logging.getLogger(__name__)

# Faults the engine can raise while running arbitrary SQL text
ENGINE_ERRORS = (SQLAlchemyError, sqlite3.Error, sqlite3.Warning)


def engine_message(exc: BaseException) -> str:
    """Return the engine's own message, without SQLAlchemy's statement dump."""
    return str(getattr(exc, "orig", None) or exc)


class DataStore:
    """Manages the session's SQLite database.

    All work goes through a single DBAPI connection (``StaticPool``) and a
    re-entrant lock, so a transaction always commits or rolls back before
    any other statement touches the store.
    """

    def __init__(self, database_url: str = "sqlite://", read_only: bool = False):
        self.database_url = database_url
        self._read_only = read_only
        self._lock = threading.RLock()
        self.engine = create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

        # pysqlite only begins transactions before DML; emit BEGIN ourselves
        # so DDL (DROP / CREATE) commits or rolls back with the inserts
        @event.listens_for(self.engine, "connect")
        def _disable_driver_begin(dbapi_conn, connection_record):
            dbapi_conn.isolation_level = None

        @event.listens_for(self.engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        if read_only:

            @event.listens_for(self.engine, "connect")
            def _set_sqlite_read_only(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA query_only = ON")
                cursor.close()

    @classmethod
    def open_readonly(cls, path: str) -> "DataStore":
        """Open a SQLite file as an independent read-only store."""
        return cls(f"sqlite:///{path}", read_only=True)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @contextmanager
    def connection(self):
        """Context manager for a locked connection (no commit)"""
        with self._lock:
            connection = self.engine.connect()
            try:
                yield connection
            finally:
                connection.close()

    @contextmanager
    def transaction(self):
        """Context manager for a locked, all-or-nothing transaction"""
        with self._lock:
            with self.engine.begin() as connection:
                yield connection

    @staticmethod
    def fetch(connection, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement on ``connection`` and return rows as dicts."""
        if params is None:
            result = connection.exec_driver_sql(sql)
        else:
            result = connection.exec_driver_sql(sql, tuple(params))
        if not result.returns_rows:
            return []
        columns = list(result.keys())
        return [dict(zip(columns, row)) for row in result.fetchall()]

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute one statement and return its rows as field-keyed dicts"""
        with self.connection() as conn:
            return self.fetch(conn, sql, params)

    def execute(self, sql: str) -> None:
        """Execute one statement with no result expected (DDL etc.)"""
        with self.transaction() as conn:
            conn.exec_driver_sql(sql)

    def run_readonly(self, sql: str) -> List[Dict[str, Any]]:
        """Execute untrusted SQL text with the connection in query-only mode.

        Raises ``QueryExecutionFault`` carrying the engine's message when
        the statement is rejected; nothing it attempted is kept.
        """
        with self.connection() as conn:
            conn.exec_driver_sql("PRAGMA query_only = ON")
            try:
                rows = self.fetch(conn, sql)
                conn.rollback()
                return rows
            except ENGINE_ERRORS as e:
                conn.rollback()
                logger.info("Generated SQL rejected: %s", engine_message(e))
                raise QueryExecutionFault(engine_message(e)) from e
            finally:
                if not self._read_only:
                    conn.exec_driver_sql("PRAGMA query_only = OFF")

    def close(self) -> None:
        """Release the underlying connection"""
        self.engine.dispose()

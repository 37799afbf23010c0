from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import mysql.connector
from mysql.connector.constants import ClientFlag

from ..core.exceptions import ServerError

logger = logging.getLogger(__name__)

# Connection bound by an open transaction() block in the current context.
_active_connection: ContextVar[Optional[Any]] = ContextVar("presence_tracker_active_connection", default=None)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    connect_timeout: int = 10
    statement_timeout_ms: int = 5000
    lock_wait_timeout: int = 5


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: Outside a transaction() block every repository call uses its own
    short-lived connection. Inside one, calls share the bound connection and
    commit or roll back together.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def connect(self):
        try:
            conn = mysql.connector.connect(
                host=self._config.host,
                port=int(self._config.port),
                user=self._config.user,
                password=self._config.password,
                database=self._config.database,
                connection_timeout=int(self._config.connect_timeout),
                autocommit=False,
                # rowcount reports matched rows, so idempotent UPDATEs still count.
                client_flags=[ClientFlag.FOUND_ROWS],
            )
        except mysql.connector.Error as exc:
            logger.error("Database connection failed: %s", exc)
            raise ServerError("Storage unavailable") from exc

        try:
            cur = conn.cursor()
            try:
                cur.execute("SET SESSION innodb_lock_wait_timeout=%s", (int(self._config.lock_wait_timeout),))
                cur.execute("SET SESSION max_execution_time=%s", (int(self._config.statement_timeout_ms),))
            finally:
                cur.close()
        except mysql.connector.Error as exc:
            conn.close()
            logger.error("Database session setup failed: %s", exc)
            raise ServerError("Storage unavailable") from exc
        return conn

    @staticmethod
    def active() -> Optional[Any]:
        return _active_connection.get()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Run the enclosed repository calls in one atomic transaction.

        Nested blocks join the outermost one. Any exception (including
        GeneratorExit from an aborted request) rolls everything back.
        """

        outer = _active_connection.get()
        if outer is not None:
            yield outer
            return

        conn = self.connect()
        token = _active_connection.set(conn)
        try:
            # autocommit is off, so the first statement opens the transaction.
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            _active_connection.reset(token)
            conn.close()

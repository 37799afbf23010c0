from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import time, timedelta
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError, ServerError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

_TIMEOUT_ERRNOS = {
    errorcode.ER_LOCK_WAIT_TIMEOUT,
    errorcode.ER_LOCK_DEADLOCK,
    3024,  # ER_QUERY_TIMEOUT (max_execution_time exceeded)
}


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Yield ``(conn, cursor)``.

    Joins the connection of an open ``transaction()`` block when there is one
    (commit/rollback is then left to the block). Driver errors are translated:
    integrity violations become ConflictError, everything else ServerError.
    """

    bound = conn_factory.active()
    conn = bound if bound is not None else conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            if bound is None:
                conn.commit()
        finally:
            cur.close()
    except mysql.connector.IntegrityError as exc:
        if bound is None:
            conn.rollback()
        logger.info("Integrity violation: %s", exc)
        raise ConflictError("Duplicate record") from exc
    except mysql.connector.Error as exc:
        if bound is None:
            conn.rollback()
        if getattr(exc, "errno", None) in _TIMEOUT_ERRNOS:
            logger.warning("Store timeout: %s", exc)
            raise ServerError("Storage timeout") from exc
        logger.error("Store failure: %s", exc)
        raise ServerError("Storage failure") from exc
    except Exception:
        if bound is None:
            conn.rollback()
        raise
    finally:
        if bound is None:
            conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def normalize_mysql_time(value: Any) -> Optional[time]:
    """Normalize MySQL TIME values across connector implementations.

    mysql-connector can return TIME as:
    - datetime.time
    - datetime.timedelta
    - string (e.g. '08:30:00')
    """

    if value is None:
        return None

    if isinstance(value, time):
        return value

    if isinstance(value, timedelta):
        total_seconds = int(value.total_seconds()) % 86400
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60
        return time(hour=hours, minute=minutes, second=seconds)

    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"Invalid time string: {value!r}")
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2]) if len(parts) >= 3 and parts[2] else 0
        return time(hour=hours, minute=minutes, second=seconds)

    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")

from __future__ import annotations

from typing import Optional

from ..core.enums import EventSource
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import DeviceBinding
from .repository import DeviceRegistry


class MySQLDeviceRegistry(DeviceRegistry):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def find(self, source: EventSource, identifier: str) -> Optional[DeviceBinding]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT binding_id, source, identifier, user_id, is_active
                FROM device_bindings
                WHERE source=%s AND identifier=%s AND is_active=1
                """,
                (source.value, identifier),
            )
            r = fetchone(cur)
            if not r:
                return None
            return DeviceBinding(
                binding_id=int(r["binding_id"]),
                source=EventSource(r["source"]),
                identifier=r["identifier"],
                user_id=int(r["user_id"]),
                is_active=bool(r["is_active"]),
            )

from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import Tenant
from .repository import TenantRepository


class MySQLTenantRepository(TenantRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT company_id, name, is_active, max_employees FROM companies WHERE company_id=%s",
                (int(tenant_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Tenant(
                tenant_id=int(row["company_id"]),
                name=row["name"],
                is_active=bool(row.get("is_active", True)),
                max_employees=int(row.get("max_employees") or 0),
            )

from __future__ import annotations

from typing import Optional

from ..common.pagination import Page, PageRequest
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_time
from .model import WindowBounds, WindowPolicy
from .repository import WindowPolicyRepository

_COLUMNS = """
    config_id, company_id, checkin_start, checkin_end, checkout_start, checkout_end,
    is_active, created_at, updated_at
"""


def _to_policy(r: dict) -> WindowPolicy:
    return WindowPolicy(
        policy_id=int(r["config_id"]),
        tenant_id=int(r["company_id"]),
        checkin_start=normalize_mysql_time(r["checkin_start"]),
        checkin_end=normalize_mysql_time(r["checkin_end"]),
        checkout_start=normalize_mysql_time(r["checkout_start"]),
        checkout_end=normalize_mysql_time(r["checkout_end"]),
        is_active=bool(r["is_active"]),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLWindowPolicyRepository(WindowPolicyRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, policy_id: int) -> Optional[WindowPolicy]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM presence_configs WHERE config_id=%s", (int(policy_id),))
            r = fetchone(cur)
            return _to_policy(r) if r else None

    def get_active_for_tenant(self, tenant_id: int) -> Optional[WindowPolicy]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM presence_configs WHERE company_id=%s AND is_active=1",
                (int(tenant_id),),
            )
            r = fetchone(cur)
            return _to_policy(r) if r else None

    def list(
        self,
        *,
        tenant_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        page: PageRequest = PageRequest(),
    ) -> Page[WindowPolicy]:
        clauses = ["1=1"]
        params: list[object] = []

        if tenant_id is not None:
            clauses.append("company_id=%s")
            params.append(int(tenant_id))
        if is_active is not None:
            clauses.append("is_active=%s")
            params.append(1 if is_active else 0)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM presence_configs WHERE {where}", tuple(params))
            total = int(fetchone(cur)["total"])
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM presence_configs
                WHERE {where}
                ORDER BY created_at DESC, config_id DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params + [page.per_page, page.offset]),
            )
            rows = fetchall(cur)
        return Page(items=[_to_policy(r) for r in rows], total=total, page=page.page, per_page=page.per_page)

    def insert(self, *, tenant_id: int, bounds: WindowBounds, is_active: bool) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO presence_configs(company_id, checkin_start, checkin_end, checkout_start, checkout_end, is_active)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(tenant_id),
                    bounds.checkin_start,
                    bounds.checkin_end,
                    bounds.checkout_start,
                    bounds.checkout_end,
                    1 if is_active else 0,
                ),
            )
            return int(cur.lastrowid)

    def update(self, *, policy_id: int, bounds: WindowBounds, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE presence_configs
                SET checkin_start=%s, checkin_end=%s, checkout_start=%s, checkout_end=%s, is_active=%s
                WHERE config_id=%s
                """,
                (
                    bounds.checkin_start,
                    bounds.checkin_end,
                    bounds.checkout_start,
                    bounds.checkout_end,
                    1 if is_active else 0,
                    int(policy_id),
                ),
            )
            return cur.rowcount > 0

    def set_active(self, *, policy_id: int, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE presence_configs SET is_active=%s WHERE config_id=%s",
                (1 if is_active else 0, int(policy_id)),
            )
            return cur.rowcount > 0

    def delete(self, *, policy_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM presence_configs WHERE config_id=%s AND is_active=0", (int(policy_id),))
            return cur.rowcount > 0

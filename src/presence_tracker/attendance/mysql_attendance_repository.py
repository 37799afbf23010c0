from __future__ import annotations

import json
from datetime import date, datetime
from typing import Optional, Sequence

from ..access.model import ScopeFilter
from ..common.pagination import Page, PageRequest
from ..core.enums import AttendanceStatus, EventKind, EventSource
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceEvent, EventFilters, Location, NewEvent
from .repository import AttendanceRepository

_SELECT = """
    SELECT p.presence_id, p.user_id, p.kind, p.source, p.status, p.presence_time, p.presence_date,
           p.latitude, p.longitude, p.address, p.data, p.is_valid, p.notes, p.created_at,
           u.company_id
    FROM presences p
    JOIN users u ON u.user_id = p.user_id
"""


def _decode_data(raw) -> Optional[dict]:
    if raw in (None, ""):
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        # Rows written by older clients may hold a bare string.
        return {"raw": raw}
    return value if isinstance(value, dict) else {"raw": value}


def _to_event(r: dict) -> AttendanceEvent:
    return AttendanceEvent(
        event_id=int(r["presence_id"]),
        user_id=int(r["user_id"]),
        kind=EventKind(r["kind"]),
        source=EventSource(r["source"]),
        status=AttendanceStatus(r["status"]),
        timestamp=r["presence_time"],
        event_date=r["presence_date"],
        location=Location(
            latitude=float(r["latitude"]) if r.get("latitude") is not None else None,
            longitude=float(r["longitude"]) if r.get("longitude") is not None else None,
            address=r.get("address"),
        ),
        data=_decode_data(r.get("data")),
        is_valid=bool(r.get("is_valid", True)),
        notes=r.get("notes"),
        owner_tenant_id=r.get("company_id"),
        created_at=r.get("created_at"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, event_id: int) -> Optional[AttendanceEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE p.presence_id=%s AND p.deleted_at IS NULL", (int(event_id),))
            r = fetchone(cur)
            return _to_event(r) if r else None

    def get_for_user_and_date(self, user_id: int, event_date: date, kind: EventKind) -> Optional[AttendanceEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT
                + """
                WHERE p.user_id=%s AND p.presence_date=%s AND p.kind=%s AND p.deleted_at IS NULL
                """,
                (int(user_id), event_date, kind.value),
            )
            r = fetchone(cur)
            return _to_event(r) if r else None

    def insert(self, event: NewEvent) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO presences(
                    user_id, kind, source, status, presence_time, presence_date,
                    latitude, longitude, address, data, is_valid, notes
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(event.user_id),
                    event.kind.value,
                    event.source.value,
                    event.status.value,
                    event.timestamp,
                    event.event_date,
                    event.location.latitude,
                    event.location.longitude,
                    event.location.address,
                    json.dumps(event.data) if event.data is not None else None,
                    1 if event.is_valid else 0,
                    event.notes,
                ),
            )
            return int(cur.lastrowid)

    def query(
        self,
        *,
        scope: ScopeFilter,
        filters: EventFilters,
        page: PageRequest,
    ) -> Page[AttendanceEvent]:
        clauses = ["p.deleted_at IS NULL"]
        params: list[object] = []

        if scope.tenant_id is not None:
            clauses.append("u.company_id=%s")
            params.append(int(scope.tenant_id))
        if scope.user_id is not None:
            clauses.append("p.user_id=%s")
            params.append(int(scope.user_id))
        if filters.user_id is not None:
            clauses.append("p.user_id=%s")
            params.append(int(filters.user_id))
        if filters.on_date is not None:
            clauses.append("p.presence_date=%s")
            params.append(filters.on_date)
        if filters.date_from is not None:
            clauses.append("p.presence_date>=%s")
            params.append(filters.date_from)
        if filters.date_to is not None:
            clauses.append("p.presence_date<=%s")
            params.append(filters.date_to)
        if filters.kind is not None:
            clauses.append("p.kind=%s")
            params.append(filters.kind.value)
        if filters.source is not None:
            clauses.append("p.source=%s")
            params.append(filters.source.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS total
                FROM presences p
                JOIN users u ON u.user_id = p.user_id
                WHERE {where}
                """,
                tuple(params),
            )
            total = int(fetchone(cur)["total"])
            cur.execute(
                _SELECT + f" WHERE {where} ORDER BY p.presence_time DESC, p.presence_id DESC LIMIT %s OFFSET %s",
                tuple(params + [page.per_page, page.offset]),
            )
            rows = fetchall(cur)
        return Page(items=[_to_event(r) for r in rows], total=total, page=page.page, per_page=page.per_page)

    def checkouts_for(self, keys: Sequence[tuple[int, date]]) -> Sequence[AttendanceEvent]:
        keys = list(dict.fromkeys((int(user_id), event_date) for user_id, event_date in keys))
        if not keys:
            return []

        pairs = " OR ".join(["(p.user_id=%s AND p.presence_date=%s)"] * len(keys))
        params: list[object] = [EventKind.CHECKOUT.value]
        for user_id, event_date in keys:
            params.extend([user_id, event_date])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + f" WHERE p.kind=%s AND p.deleted_at IS NULL AND ({pairs})",
                tuple(params),
            )
            return [_to_event(r) for r in fetchall(cur)]

    def soft_delete(self, event_id: int, *, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE presences SET deleted_at=%s WHERE presence_id=%s AND deleted_at IS NULL",
                (at, int(event_id)),
            )
            return cur.rowcount > 0

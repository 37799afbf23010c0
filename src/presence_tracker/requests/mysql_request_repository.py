from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..access.model import ScopeFilter
from ..common.pagination import Page, PageRequest
from ..core.enums import RequestStatus, RequestType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ExceptionRequest, RequestDraft, RequestFilters
from .repository import ExceptionRequestRepository

_SELECT = """
    SELECT r.request_id, r.user_id, r.request_type, r.start_date, r.end_date, r.reason,
           r.attachment_path, r.status, r.approved_by, r.approved_at, r.approval_notes,
           r.created_at, r.updated_at, u.company_id, u.name AS requester_name
    FROM manual_presence_requests r
    JOIN users u ON u.user_id = r.user_id
"""


def _to_request(r: dict) -> ExceptionRequest:
    return ExceptionRequest(
        request_id=int(r["request_id"]),
        user_id=int(r["user_id"]),
        request_type=RequestType(r["request_type"]),
        start_date=r["start_date"],
        end_date=r["end_date"],
        reason=r["reason"],
        status=RequestStatus(r["status"]),
        attachment_path=r.get("attachment_path"),
        approved_by=r.get("approved_by"),
        approved_at=r.get("approved_at"),
        approval_notes=r.get("approval_notes"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        owner_tenant_id=r.get("company_id"),
        requester_name=r.get("requester_name"),
    )


class MySQLExceptionRequestRepository(ExceptionRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, request_id: int) -> Optional[ExceptionRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE r.request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _to_request(r) if r else None

    def find_pending_overlapping(
        self,
        *,
        user_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> Sequence[ExceptionRequest]:
        sql = (
            _SELECT
            + """
            WHERE r.user_id=%s AND r.status=%s AND r.start_date<=%s AND r.end_date>=%s
            """
        )
        params: list[object] = [int(user_id), RequestStatus.PENDING.value, end_date, start_date]
        if exclude_id is not None:
            sql += " AND r.request_id<>%s"
            params.append(int(exclude_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_request(r) for r in fetchall(cur)]

    def insert(self, *, user_id: int, draft: RequestDraft) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO manual_presence_requests(
                    user_id, request_type, start_date, end_date, reason, attachment_path, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    draft.request_type.value,
                    draft.start_date,
                    draft.end_date,
                    draft.reason,
                    draft.attachment_path,
                    RequestStatus.PENDING.value,
                ),
            )
            return int(cur.lastrowid)

    def update_if_pending(self, *, request_id: int, draft: RequestDraft) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE manual_presence_requests
                SET request_type=%s, start_date=%s, end_date=%s, reason=%s, attachment_path=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    draft.request_type.value,
                    draft.start_date,
                    draft.end_date,
                    draft.reason,
                    draft.attachment_path,
                    int(request_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def decide_if_pending(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        decided_by: int,
        decided_at: datetime,
        notes: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE manual_presence_requests
                SET status=%s, approved_by=%s, approved_at=%s, approval_notes=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    status.value,
                    int(decided_by),
                    decided_at,
                    notes,
                    int(request_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    def delete_if_pending(self, *, request_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM manual_presence_requests WHERE request_id=%s AND status=%s",
                (int(request_id), RequestStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def list(self, *, scope: ScopeFilter, filters: RequestFilters, page: PageRequest) -> Page[ExceptionRequest]:
        clauses = ["1=1"]
        params: list[object] = []

        if scope.tenant_id is not None:
            clauses.append("u.company_id=%s")
            params.append(int(scope.tenant_id))
        if scope.user_id is not None:
            clauses.append("r.user_id=%s")
            params.append(int(scope.user_id))
        if filters.status is not None:
            clauses.append("r.status=%s")
            params.append(filters.status.value)
        if filters.user_id is not None:
            clauses.append("r.user_id=%s")
            params.append(int(filters.user_id))
        if filters.date_from is not None:
            clauses.append("r.end_date>=%s")
            params.append(filters.date_from)
        if filters.date_to is not None:
            clauses.append("r.start_date<=%s")
            params.append(filters.date_to)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS total
                FROM manual_presence_requests r
                JOIN users u ON u.user_id = r.user_id
                WHERE {where}
                """,
                tuple(params),
            )
            total = int(fetchone(cur)["total"])
            cur.execute(
                _SELECT + f" WHERE {where} ORDER BY r.created_at DESC, r.request_id DESC LIMIT %s OFFSET %s",
                tuple(params + [page.per_page, page.offset]),
            )
            rows = fetchall(cur)
        return Page(items=[_to_request(r) for r in rows], total=total, page=page.page, per_page=page.per_page)

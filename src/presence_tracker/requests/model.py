from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import RequestStatus, RequestType


@dataclass(frozen=True)
class ExceptionRequest:
    """A sick/leave/vacation/... request awaiting an admin decision.

    ``owner_tenant_id`` and ``requester_name`` are read-model data joined from
    the requesting user.
    """

    request_id: int
    user_id: int
    request_type: RequestType
    start_date: date
    end_date: date
    reason: str
    status: RequestStatus
    attachment_path: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner_tenant_id: Optional[int] = None
    requester_name: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and self.end_date >= start


@dataclass(frozen=True)
class RequestDraft:
    """Requester-editable fields, used for both submit and update."""

    request_type: RequestType
    start_date: date
    end_date: date
    reason: str
    attachment_path: Optional[str] = None


@dataclass(frozen=True)
class RequestFilters:
    status: Optional[RequestStatus] = None
    user_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

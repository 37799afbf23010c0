from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..access.model import ScopeFilter
from ..common.pagination import Page, PageRequest
from ..core.enums import RequestStatus
from .model import ExceptionRequest, RequestDraft, RequestFilters


class ExceptionRequestRepository(Protocol):
    """Storage for exception requests.

    Every state-changing call is conditional on the row still being pending
    and reports whether it applied.
    """

    def get_by_id(self, request_id: int) -> Optional[ExceptionRequest]:
        raise NotImplementedError

    def find_pending_overlapping(
        self,
        *,
        user_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> Sequence[ExceptionRequest]:
        raise NotImplementedError

    def insert(self, *, user_id: int, draft: RequestDraft) -> int:
        raise NotImplementedError

    def update_if_pending(self, *, request_id: int, draft: RequestDraft) -> bool:
        raise NotImplementedError

    def decide_if_pending(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        decided_by: int,
        decided_at: datetime,
        notes: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def delete_if_pending(self, *, request_id: int) -> bool:
        raise NotImplementedError

    def list(self, *, scope: ScopeFilter, filters: RequestFilters, page: PageRequest) -> Page[ExceptionRequest]:
        raise NotImplementedError

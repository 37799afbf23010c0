from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..access.model import ScopeFilter
from ..common.pagination import Page, PageRequest
from ..core.enums import EventKind, EventSource
from .model import AttendanceEvent, DeviceBinding, EventFilters, NewEvent


class AttendanceRepository(Protocol):
    """Ledger storage. Only live (not soft-deleted) events are ever returned."""

    def get_by_id(self, event_id: int) -> Optional[AttendanceEvent]:
        raise NotImplementedError

    def get_for_user_and_date(self, user_id: int, event_date: date, kind: EventKind) -> Optional[AttendanceEvent]:
        raise NotImplementedError

    def insert(self, event: NewEvent) -> int:
        """Raises ConflictError when the user already has a live event of this kind that day."""

        raise NotImplementedError

    def query(
        self,
        *,
        scope: ScopeFilter,
        filters: EventFilters,
        page: PageRequest,
    ) -> Page[AttendanceEvent]:
        raise NotImplementedError

    def checkouts_for(self, keys: Sequence[tuple[int, date]]) -> Sequence[AttendanceEvent]:
        """Live checkouts for any of the given ``(user_id, event_date)`` pairs, in one round trip."""

        raise NotImplementedError

    def soft_delete(self, event_id: int, *, at: datetime) -> bool:
        raise NotImplementedError


class DeviceRegistry(Protocol):
    def find(self, source: EventSource, identifier: str) -> Optional[DeviceBinding]:
        """Active binding for a raw device identifier, if any."""

        raise NotImplementedError

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from ..core.enums import AttendanceStatus, EventKind, EventSource, TodayStatus
from ..policies.model import WindowPolicy


@dataclass(frozen=True)
class Location:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class AttendanceEvent:
    """Domain entity: one check-in or check-out in the ledger.

    ``owner_tenant_id`` is read-model data (the owning user's company) used
    for scope checks; it is not stored on the event itself.
    """

    event_id: int
    user_id: int
    kind: EventKind
    source: EventSource
    status: AttendanceStatus
    timestamp: datetime
    event_date: date
    location: Location = field(default_factory=Location)
    data: Optional[dict[str, Any]] = None
    is_valid: bool = True
    notes: Optional[str] = None
    owner_tenant_id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewEvent:
    """Insert payload for the ledger."""

    user_id: int
    kind: EventKind
    source: EventSource
    status: AttendanceStatus
    timestamp: datetime
    location: Location = field(default_factory=Location)
    data: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    is_valid: bool = True

    @property
    def event_date(self) -> date:
        return self.timestamp.date()


@dataclass(frozen=True)
class EventFilters:
    user_id: Optional[int] = None
    on_date: Optional[date] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    kind: Optional[EventKind] = None
    source: Optional[EventSource] = None


@dataclass(frozen=True)
class DeviceBinding:
    """Registry entry mapping a raw device identifier to a user."""

    binding_id: int
    source: EventSource
    identifier: str
    user_id: int
    is_active: bool = True


@dataclass(frozen=True)
class PresenceStatus:
    checkin: Optional[AttendanceEvent]
    checkout: Optional[AttendanceEvent]
    policy: Optional[WindowPolicy]
    can_check_in: bool
    can_check_out: bool

    @property
    def has_checked_in(self) -> bool:
        return self.checkin is not None

    @property
    def has_checked_out(self) -> bool:
        return self.checkout is not None

    @property
    def is_checked_in(self) -> bool:
        return self.has_checked_in and not self.has_checked_out

    @property
    def is_completed(self) -> bool:
        return self.has_checked_in and self.has_checked_out


@dataclass(frozen=True)
class TodayPresence:
    presence: Optional[AttendanceEvent]
    status: TodayStatus

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional, Union

from ..core.enums import AttendanceStatus, EventKind

TimeLike = Union[time, datetime]


def _time_of_day(value: TimeLike) -> time:
    # Classification ignores the date part.
    if isinstance(value, datetime):
        return value.time()
    return value


@dataclass(frozen=True)
class WindowBounds:
    checkin_start: time
    checkin_end: time
    checkout_start: time
    checkout_end: time

    def ordering_errors(self) -> dict[str, list[str]]:
        """Field errors for ``checkin_start < checkin_end <= checkout_start < checkout_end``."""

        errors: dict[str, list[str]] = {}
        if not self.checkin_start < self.checkin_end:
            errors["checkin_end"] = ["Must be after checkin_start."]
        if not self.checkin_end <= self.checkout_start:
            errors["checkout_start"] = ["Must not be before checkin_end."]
        if not self.checkout_start < self.checkout_end:
            errors["checkout_end"] = ["Must be after checkout_start."]
        return errors


@dataclass(frozen=True)
class WindowPolicy:
    """A tenant's check-in/check-out time windows.

    Windows are advisory for permission (status snapshot) and authoritative
    for status labeling at event-write time.
    """

    policy_id: int
    tenant_id: int
    checkin_start: time
    checkin_end: time
    checkout_start: time
    checkout_end: time
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def bounds(self) -> WindowBounds:
        return WindowBounds(self.checkin_start, self.checkin_end, self.checkout_start, self.checkout_end)

    def is_within_checkin_window(self, value: TimeLike) -> bool:
        return self.checkin_start <= _time_of_day(value) <= self.checkin_end

    def is_within_checkout_window(self, value: TimeLike) -> bool:
        return self.checkout_start <= _time_of_day(value) <= self.checkout_end

    def is_late_checkin(self, value: TimeLike) -> bool:
        return _time_of_day(value) > self.checkin_end

    def is_early_checkout(self, value: TimeLike) -> bool:
        return _time_of_day(value) < self.checkout_start

    @property
    def checkin_window(self) -> str:
        return f"{self.checkin_start:%H:%M} - {self.checkin_end:%H:%M}"

    @property
    def checkout_window(self) -> str:
        return f"{self.checkout_start:%H:%M} - {self.checkout_end:%H:%M}"

    def next_checkin_time(self, now: datetime) -> datetime:
        """Start of the next check-in window strictly after today."""
        return datetime.combine(now.date() + timedelta(days=1), self.checkin_start)

    def next_checkout_time(self, now: datetime) -> datetime:
        today_start = datetime.combine(now.date(), self.checkout_start)
        if now > today_start:
            return datetime.combine(now.date() + timedelta(days=1), self.checkout_start)
        return today_start


def classify(event_time: TimeLike, policy: Optional[WindowPolicy], kind: EventKind) -> AttendanceStatus:
    """Label an event against a policy; without a policy everything is on time."""

    if policy is None:
        return AttendanceStatus.ON_TIME
    if kind == EventKind.CHECKIN:
        return AttendanceStatus.LATE if policy.is_late_checkin(event_time) else AttendanceStatus.ON_TIME
    return AttendanceStatus.EARLY_LEAVE if policy.is_early_checkout(event_time) else AttendanceStatus.ON_TIME

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...policies.model import WindowPolicy
from .base import AttendanceStrategy, StatusDecision, minutes_between_times


class LateStrategy(AttendanceStrategy):
    """Check-in after the end of the check-in window."""

    def decide_checkin(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        details = {}
        if policy:
            details["late_minutes"] = minutes_between_times(policy.checkin_end, now.time(), now)
        return StatusDecision(status=AttendanceStatus.LATE, details=details)

    def decide_checkout(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.ON_TIME)

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...policies.model import WindowPolicy
from .base import AttendanceStrategy, StatusDecision, minutes_between_times


class EarlyLeaveStrategy(AttendanceStrategy):
    """Check-out before the check-out window opens."""

    def decide_checkin(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.ON_TIME)

    def decide_checkout(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        details = {}
        if policy:
            details["early_minutes"] = minutes_between_times(now.time(), policy.checkout_start, now)
        return StatusDecision(status=AttendanceStatus.EARLY_LEAVE, details=details)

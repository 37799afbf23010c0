from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...policies.model import WindowPolicy
from .base import AttendanceStrategy, StatusDecision


class NormalStrategy(AttendanceStrategy):
    """On-time check-in, normal check-out (also used when no policy is active)."""

    def decide_checkin(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.ON_TIME)

    def decide_checkout(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.ON_TIME)

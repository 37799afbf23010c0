from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus, EventKind
from ..policies.model import WindowPolicy, classify
from .strategies.base import AttendanceStrategy
from .strategies.early_strategy import EarlyLeaveStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.normal_strategy import NormalStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on the tenant's policy."""

    def for_checkin(self, *, now: datetime, policy: Optional[WindowPolicy]) -> AttendanceStrategy:
        if classify(now, policy, EventKind.CHECKIN) == AttendanceStatus.LATE:
            return LateStrategy()
        return NormalStrategy()

    def for_checkout(self, *, now: datetime, policy: Optional[WindowPolicy]) -> AttendanceStrategy:
        if classify(now, policy, EventKind.CHECKOUT) == AttendanceStatus.EARLY_LEAVE:
            return EarlyLeaveStrategy()
        return NormalStrategy()

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Optional

from ...core.enums import AttendanceStatus
from ...policies.model import WindowPolicy


@dataclass(frozen=True)
class StatusDecision:
    status: AttendanceStatus
    details: dict[str, Any] = field(default_factory=dict)


class AttendanceStrategy(ABC):
    """Strategy Pattern: encapsulate how we decide an attendance status."""

    @abstractmethod
    def decide_checkin(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        raise NotImplementedError

    @abstractmethod
    def decide_checkout(self, *, now: datetime, policy: Optional[WindowPolicy]) -> StatusDecision:
        raise NotImplementedError


def minutes_between_times(earlier: time, later: time, on: datetime) -> int:
    delta = datetime.combine(on.date(), later) - datetime.combine(on.date(), earlier)
    return max(int(delta.total_seconds() // 60), 0)

from datetime import datetime, time

from presence_tracker.attendance.factory import AttendanceStrategyFactory
from presence_tracker.attendance.strategies.early_strategy import EarlyLeaveStrategy
from presence_tracker.attendance.strategies.late_strategy import LateStrategy
from presence_tracker.attendance.strategies.normal_strategy import NormalStrategy
from presence_tracker.core.enums import AttendanceStatus
from presence_tracker.policies.model import WindowPolicy

POLICY = WindowPolicy(
    policy_id=1,
    tenant_id=1,
    checkin_start=time(7, 0),
    checkin_end=time(9, 0),
    checkout_start=time(16, 0),
    checkout_end=time(18, 0),
)


def test_factory_checkin_on_time_at_window_end():
    strategy = AttendanceStrategyFactory().for_checkin(now=datetime(2025, 1, 1, 9, 0, 0), policy=POLICY)

    assert isinstance(strategy, NormalStrategy)


def test_factory_checkin_late_after_window_end():
    now = datetime(2025, 1, 1, 9, 30)
    strategy = AttendanceStrategyFactory().for_checkin(now=now, policy=POLICY)

    assert isinstance(strategy, LateStrategy)
    decision = strategy.decide_checkin(now=now, policy=POLICY)
    assert decision.status == AttendanceStatus.LATE
    assert decision.details == {"late_minutes": 30}


def test_factory_checkout_early_before_window():
    now = datetime(2025, 1, 1, 15, 30)
    strategy = AttendanceStrategyFactory().for_checkout(now=now, policy=POLICY)

    assert isinstance(strategy, EarlyLeaveStrategy)
    decision = strategy.decide_checkout(now=now, policy=POLICY)
    assert decision.status == AttendanceStatus.EARLY_LEAVE
    assert decision.details == {"early_minutes": 30}


def test_factory_checkout_normal_inside_window():
    strategy = AttendanceStrategyFactory().for_checkout(now=datetime(2025, 1, 1, 17, 0), policy=POLICY)

    assert isinstance(strategy, NormalStrategy)


def test_factory_without_policy_is_always_normal():
    factory = AttendanceStrategyFactory()
    now = datetime(2025, 1, 1, 23, 0)

    assert isinstance(factory.for_checkin(now=now, policy=None), NormalStrategy)
    assert isinstance(factory.for_checkout(now=now, policy=None), NormalStrategy)
    assert NormalStrategy().decide_checkin(now=now, policy=None).status == AttendanceStatus.ON_TIME

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for authorization and visibility scoping."""

    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "admin_company"
    EMPLOYEE = "employee"


class EventKind(str, Enum):
    CHECKIN = "checkin"
    CHECKOUT = "checkout"


class EventSource(str, Enum):
    """How an attendance event reached the ledger."""

    MANUAL = "manual"
    RFID = "rfid"
    FACE = "face"
    FINGERPRINT = "fingerprint"


class AttendanceStatus(str, Enum):
    """Classification stored on each event at write time."""

    ON_TIME = "on_time"
    LATE = "late"
    EARLY_LEAVE = "early_leave"


class RequestType(str, Enum):
    SICK = "sick"
    LEAVE = "leave"
    VACATION = "vacation"
    BUSINESS_TRIP = "business_trip"
    OTHER = "other"


class RequestStatus(str, Enum):
    """Approval workflow state. APPROVED and REJECTED are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TodayStatus(str, Enum):
    NOT_CHECKED_IN = "not_checked_in"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class Principal:
    """The authenticated actor performing an operation."""

    user_id: int
    role: Role
    tenant_id: Optional[int]
    name: str = ""
    is_active: bool = True


class Action(str, Enum):
    """Operations gated by role before any record is loaded."""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    VIEW_OWN_ATTENDANCE = "view_own_attendance"
    VIEW_ATTENDANCE = "view_attendance"
    VIEW_COMPANY_HISTORY = "view_company_history"
    DELETE_ATTENDANCE = "delete_attendance"
    SUBMIT_REQUEST = "submit_request"
    VIEW_OWN_REQUESTS = "view_own_requests"
    VIEW_REQUESTS = "view_requests"
    DECIDE_REQUEST = "decide_request"
    WITHDRAW_REQUEST = "withdraw_request"
    MANAGE_POLICIES = "manage_policies"


@dataclass(frozen=True)
class ScopeFilter:
    """Predicate pushed down into repository queries.

    ``None`` means unrestricted on that axis.
    """

    tenant_id: Optional[int] = None
    user_id: Optional[int] = None

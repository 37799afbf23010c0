from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..access.model import Principal
from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Note: Plain data object (no DB access code).
    """

    user_id: int
    name: str
    email: str
    password_hash: str
    role: Role
    tenant_id: Optional[int]
    is_active: bool = True

    def to_principal(self) -> Principal:
        return Principal(
            user_id=self.user_id,
            role=self.role,
            tenant_id=self.tenant_id,
            name=self.name,
            is_active=self.is_active,
        )


@dataclass(frozen=True)
class Tenant:
    """Domain entity: a company account, the unit of data isolation."""

    tenant_id: int
    name: str
    is_active: bool = True
    max_employees: int = 0

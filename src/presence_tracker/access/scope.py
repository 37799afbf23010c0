"""Role/tenant-aware visibility applied before every core read or write.

Role checks are evaluated once here from a capability table. Records outside a
principal's scope are reported as missing (NotFoundError) so their existence
does not leak; only role-gated actions produce AuthorizationError.
"""

from __future__ import annotations

from typing import Optional

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError
from .model import Action, Principal, ScopeFilter

_ALL_ROLES = frozenset(Role)
_ADMINS = frozenset({Role.SUPER_ADMIN, Role.COMPANY_ADMIN})

CAPABILITIES: dict[Action, frozenset[Role]] = {
    Action.CHECK_IN: _ALL_ROLES,
    Action.CHECK_OUT: _ALL_ROLES,
    Action.VIEW_OWN_ATTENDANCE: _ALL_ROLES,
    Action.VIEW_ATTENDANCE: _ADMINS,
    Action.VIEW_COMPANY_HISTORY: _ADMINS,
    Action.DELETE_ATTENDANCE: _ADMINS,
    Action.SUBMIT_REQUEST: _ALL_ROLES,
    Action.VIEW_OWN_REQUESTS: _ALL_ROLES,
    Action.VIEW_REQUESTS: _ADMINS,
    Action.DECIDE_REQUEST: _ADMINS,
    Action.WITHDRAW_REQUEST: _ALL_ROLES,
    Action.MANAGE_POLICIES: _ADMINS,
}


class AccessScope:
    def __init__(self, principal: Principal):
        self.principal = principal

    @property
    def role(self) -> Role:
        return self.principal.role

    @property
    def is_super_admin(self) -> bool:
        return self.principal.role == Role.SUPER_ADMIN

    def can(self, action: Action) -> bool:
        return self.principal.role in CAPABILITIES.get(action, frozenset())

    def require(self, action: Action) -> None:
        if not self.principal.is_active:
            raise AuthorizationError("Account is inactive")
        if not self.can(action):
            raise AuthorizationError("Access denied for role " + self.principal.role.value)

    def filter(self) -> ScopeFilter:
        if self.principal.role == Role.SUPER_ADMIN:
            return ScopeFilter()
        if self.principal.role == Role.COMPANY_ADMIN:
            return ScopeFilter(tenant_id=self._own_tenant())
        return ScopeFilter(user_id=self.principal.user_id)

    def own_filter(self) -> ScopeFilter:
        return ScopeFilter(user_id=self.principal.user_id)

    def can_see(self, *, owner_id: int, owner_tenant_id: Optional[int]) -> bool:
        """Whether a record owned by ``owner_id`` (of ``owner_tenant_id``) is visible."""

        if self.principal.role == Role.SUPER_ADMIN:
            return True
        if self.principal.role == Role.COMPANY_ADMIN:
            return self.principal.tenant_id is not None and owner_tenant_id == self.principal.tenant_id
        return owner_id == self.principal.user_id

    def ensure_visible(self, *, owner_id: int, owner_tenant_id: Optional[int], message: str = "Resource not found") -> None:
        if not self.can_see(owner_id=owner_id, owner_tenant_id=owner_tenant_id):
            raise NotFoundError(message)

    def can_manage_tenant(self, tenant_id: Optional[int]) -> bool:
        if self.principal.role == Role.SUPER_ADMIN:
            return True
        return self.principal.role == Role.COMPANY_ADMIN and tenant_id is not None and tenant_id == self.principal.tenant_id

    def ensure_tenant_visible(self, tenant_id: Optional[int], message: str = "Resource not found") -> None:
        if not self.can_manage_tenant(tenant_id):
            raise NotFoundError(message)

    def ensure_tenant_authority(self, tenant_id: Optional[int], message: str) -> None:
        """For actions naming a tenant explicitly (create/lookup by company id)."""

        if not self.can_manage_tenant(tenant_id):
            raise AuthorizationError(message)

    def resolve_tenant(self, requested: Optional[int]) -> Optional[int]:
        """Tenant a tenant-level listing should target."""

        if self.principal.role == Role.SUPER_ADMIN:
            return requested
        return self._own_tenant()

    def _own_tenant(self) -> int:
        # Without a company there is no tenant-level view at all.
        if self.principal.tenant_id is None:
            raise AuthorizationError("No company is assigned to this account")
        return self.principal.tenant_id

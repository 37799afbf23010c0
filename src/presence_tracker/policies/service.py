from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Callable, Optional

from ..access.model import Action
from ..access.scope import AccessScope
from ..common.pagination import Page, PageRequest
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..users.repository import TenantRepository
from .model import WindowBounds, WindowPolicy
from .repository import WindowPolicyRepository

logger = logging.getLogger(__name__)

ACTIVE_EXISTS = "An active presence configuration already exists for this company"
ANOTHER_ACTIVE = "Another active presence configuration exists for this company. Deactivate it first."
NOT_FOUND = "Presence configuration not found"


class WindowPolicyService:
    """Use cases for a tenant's check-in/check-out window policy.

    Invariants: stored bounds satisfy
    ``checkin_start < checkin_end <= checkout_start < checkout_end`` and a
    tenant has at most one active policy. The second one is also backed by a
    unique index, so a concurrent activation surfaces as ConflictError.
    """

    def __init__(
        self,
        policies: WindowPolicyRepository,
        tenants: TenantRepository,
        *,
        transaction: Callable[[], AbstractContextManager],
    ):
        self._policies = policies
        self._tenants = tenants
        self._transaction = transaction

    @staticmethod
    def _validate(bounds: WindowBounds) -> None:
        errors = bounds.ordering_errors()
        if errors:
            raise ValidationError("Validation failed", errors)

    def _load(self, scope: AccessScope, policy_id: int) -> WindowPolicy:
        policy = self._policies.get_by_id(int(policy_id))
        if not policy:
            raise NotFoundError(NOT_FOUND)
        scope.ensure_tenant_visible(policy.tenant_id, NOT_FOUND)
        return policy

    def active_policy_for_tenant(self, tenant_id: Optional[int]) -> Optional[WindowPolicy]:
        """Unscoped lookup used for classification inside the ledger."""

        if tenant_id is None:
            return None
        return self._policies.get_active_for_tenant(int(tenant_id))

    def create(self, scope: AccessScope, *, tenant_id: int, bounds: WindowBounds, is_active: bool = True) -> WindowPolicy:
        scope.require(Action.MANAGE_POLICIES)
        scope.ensure_tenant_authority(tenant_id, "Unauthorized to create config for this company")

        tenant = self._tenants.get_by_id(int(tenant_id))
        if not tenant or not tenant.is_active:
            raise NotFoundError("Company not found or inactive")

        self._validate(bounds)

        with self._transaction():
            if is_active and self._policies.get_active_for_tenant(tenant.tenant_id):
                raise ConflictError(ACTIVE_EXISTS)
            try:
                policy_id = self._policies.insert(tenant_id=tenant.tenant_id, bounds=bounds, is_active=is_active)
            except ConflictError as exc:
                raise ConflictError(ACTIVE_EXISTS) from exc

        logger.info("Policy %s created for company %s (active=%s)", policy_id, tenant.tenant_id, is_active)
        return self._policies.get_by_id(policy_id)

    def get(self, scope: AccessScope, policy_id: int) -> WindowPolicy:
        scope.require(Action.MANAGE_POLICIES)
        return self._load(scope, policy_id)

    def list(
        self,
        scope: AccessScope,
        *,
        tenant_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        page: PageRequest = PageRequest(),
    ) -> Page[WindowPolicy]:
        scope.require(Action.MANAGE_POLICIES)
        return self._policies.list(tenant_id=scope.resolve_tenant(tenant_id), is_active=is_active, page=page)

    def active_for(self, scope: AccessScope, tenant_id: Optional[int] = None) -> WindowPolicy:
        scope.require(Action.MANAGE_POLICIES)
        target = tenant_id if tenant_id is not None else scope.principal.tenant_id
        if target is None:
            raise ValidationError("Validation failed", {"company_id": ["This field is required."]})
        scope.ensure_tenant_authority(target, "Unauthorized to access this company config")

        policy = self._policies.get_active_for_tenant(int(target))
        if not policy:
            raise NotFoundError("No active presence configuration found for this company")
        return policy

    def update(
        self,
        scope: AccessScope,
        policy_id: int,
        *,
        bounds: WindowBounds,
        is_active: Optional[bool] = None,
    ) -> WindowPolicy:
        scope.require(Action.MANAGE_POLICIES)
        self._validate(bounds)

        with self._transaction():
            policy = self._load(scope, policy_id)
            active = policy.is_active if is_active is None else bool(is_active)
            if active and not policy.is_active:
                self._ensure_no_other_active(policy)
            try:
                self._policies.update(policy_id=policy.policy_id, bounds=bounds, is_active=active)
            except ConflictError as exc:
                raise ConflictError(ANOTHER_ACTIVE) from exc

        logger.info("Policy %s updated", policy.policy_id)
        return self._policies.get_by_id(policy.policy_id)

    def activate(self, scope: AccessScope, policy_id: int) -> WindowPolicy:
        return self._set_active(scope, policy_id, True)

    def deactivate(self, scope: AccessScope, policy_id: int) -> WindowPolicy:
        # Leaving a tenant without an active policy is allowed: events are then unclassified (on time).
        return self._set_active(scope, policy_id, False)

    def toggle(self, scope: AccessScope, policy_id: int) -> WindowPolicy:
        scope.require(Action.MANAGE_POLICIES)
        policy = self._load(scope, policy_id)
        return self._set_active(scope, policy.policy_id, not policy.is_active)

    def _set_active(self, scope: AccessScope, policy_id: int, is_active: bool) -> WindowPolicy:
        scope.require(Action.MANAGE_POLICIES)

        with self._transaction():
            policy = self._load(scope, policy_id)
            if policy.is_active == is_active:
                return policy
            if is_active:
                self._ensure_no_other_active(policy)
            try:
                self._policies.set_active(policy_id=policy.policy_id, is_active=is_active)
            except ConflictError as exc:
                raise ConflictError(ANOTHER_ACTIVE) from exc

        logger.info("Policy %s %s", policy.policy_id, "activated" if is_active else "deactivated")
        return self._policies.get_by_id(policy.policy_id)

    def _ensure_no_other_active(self, policy: WindowPolicy) -> None:
        current = self._policies.get_active_for_tenant(policy.tenant_id)
        if current and current.policy_id != policy.policy_id:
            raise ConflictError(ANOTHER_ACTIVE)

    def delete(self, scope: AccessScope, policy_id: int) -> None:
        scope.require(Action.MANAGE_POLICIES)

        with self._transaction():
            policy = self._load(scope, policy_id)
            if policy.is_active:
                raise ConflictError("Cannot delete active presence configuration. Deactivate it first.")
            if not self._policies.delete(policy_id=policy.policy_id):
                raise NotFoundError(NOT_FOUND)

        logger.info("Policy %s deleted", policy.policy_id)

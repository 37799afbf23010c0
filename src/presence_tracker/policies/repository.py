from __future__ import annotations

from typing import Optional, Protocol

from ..common.pagination import Page, PageRequest
from .model import WindowBounds, WindowPolicy


class WindowPolicyRepository(Protocol):
    def get_by_id(self, policy_id: int) -> Optional[WindowPolicy]:
        raise NotImplementedError

    def get_active_for_tenant(self, tenant_id: int) -> Optional[WindowPolicy]:
        raise NotImplementedError

    def list(
        self,
        *,
        tenant_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        page: PageRequest = PageRequest(),
    ) -> Page[WindowPolicy]:
        raise NotImplementedError

    def insert(self, *, tenant_id: int, bounds: WindowBounds, is_active: bool) -> int:
        """Raises ConflictError when a second active policy would exist."""

        raise NotImplementedError

    def update(self, *, policy_id: int, bounds: WindowBounds, is_active: bool) -> bool:
        raise NotImplementedError

    def set_active(self, *, policy_id: int, is_active: bool) -> bool:
        raise NotImplementedError

    def delete(self, *, policy_id: int) -> bool:
        raise NotImplementedError

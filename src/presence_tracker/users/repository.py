from __future__ import annotations

from typing import Optional, Protocol

from .model import Tenant, User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def lock(self, user_id: int) -> None:
        """Take a row lock on the user for the rest of the current transaction."""

        raise NotImplementedError


class TenantRepository(Protocol):
    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        raise NotImplementedError

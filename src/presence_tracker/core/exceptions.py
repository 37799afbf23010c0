from __future__ import annotations

from typing import Mapping, Optional, Sequence


class DomainError(Exception):
    """Base exception for business rule violations."""

    message = "Error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(DomainError):
    """Raised when input data is malformed or out of range.

    ``errors`` maps a field name to the list of problems found for it.
    """

    message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[Mapping[str, Sequence[str]]] = None):
        super().__init__(message)
        self.errors = {k: list(v) for k, v in (errors or {}).items()}


class ConflictError(DomainError):
    """Raised when an operation would violate a stored invariant."""

    message = "Conflict"


class NotFoundError(DomainError):
    """Raised for unknown ids and for records outside the caller's scope."""

    message = "Resource not found"


class AuthenticationError(DomainError):
    """Raised when credentials are missing or invalid."""

    message = "Unauthenticated"


class AuthorizationError(DomainError):
    """Raised when a user's role disallows an action."""

    message = "Forbidden"


class UnresolvedIdentity(DomainError):
    """Raised when a device call cannot be mapped to a user."""

    message = "Device not registered to any user"


class ServerError(DomainError):
    """Raised for unexpected failures in the store or a collaborator."""

    message = "Internal server error"

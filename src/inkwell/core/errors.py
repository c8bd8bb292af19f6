"""Error taxonomy shared by every core operation.

Each operation either returns a domain result or raises a ``DomainError``
subclass. The request layer maps ``ErrorKind`` values to status codes; the core
only commits to the kind.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """High-level error categories surfaced to the request layer."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INVALID_ARGUMENT = "invalid_argument"
    INTERNAL = "internal"


class DomainError(Exception):
    """Base exception for all core failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Return a serialisable description of the error."""
        return {"kind": self.kind.value, "message": self.message}


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, resource_id: object) -> None:
        super().__init__(f"{resource_type} '{resource_id}' not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


class ForbiddenError(DomainError):
    """The actor lacks ownership or role for the action."""

    kind = ErrorKind.FORBIDDEN


class ConflictError(DomainError):
    """The current state already satisfies or contradicts the request."""

    kind = ErrorKind.CONFLICT


class InvalidArgumentError(DomainError):
    """Malformed domain input, e.g. a past schedule date or a cyclic parent."""

    kind = ErrorKind.INVALID_ARGUMENT


class InternalError(DomainError):
    """Persistence or transport failure."""

    kind = ErrorKind.INTERNAL


__all__ = [
    "ConflictError",
    "DomainError",
    "ErrorKind",
    "ForbiddenError",
    "InternalError",
    "InvalidArgumentError",
    "NotFoundError",
]

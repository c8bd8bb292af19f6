"""Core configuration, error taxonomy and logging helpers."""

from .errors import (
    ConflictError,
    DomainError,
    ErrorKind,
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from .settings import Settings, settings

__all__ = [
    "ConflictError",
    "DomainError",
    "ErrorKind",
    "ForbiddenError",
    "InternalError",
    "InvalidArgumentError",
    "NotFoundError",
    "Settings",
    "settings",
]

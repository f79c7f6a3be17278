"""
Repository exceptions.

    RepositoryException
    ├── EntityNotFound      identity lookup / *_or_fail found nothing
    ├── RepositoryError     backend rejected the operation
    │   └── DuplicateEntity unique constraint violation
    └── InvalidQuery        malformed condition / relation / sort / paging input
"""

from typing import Any


class RepositoryException(Exception):
    """Base exception for repository operations."""

    pass


class EntityNotFound(RepositoryException):
    """Raised when entity is not found."""

    def __init__(self, model_name: str, identifier: Any = None, conditions: dict[str, Any] | None = None) -> None:
        self.model_name = model_name
        self.identifier = identifier
        self.conditions = conditions
        if identifier is not None:
            message = f"{model_name} with id {identifier} not found"
        else:
            message = f"No {model_name} matching {conditions or {}}"
        super().__init__(message)


class RepositoryError(RepositoryException):
    """Generic repository operation error."""

    pass


class DuplicateEntity(RepositoryError):
    """Raised when duplicate entity creation is attempted."""

    pass


class InvalidQuery(RepositoryException, ValueError):
    """Raised for unknown columns or relations and invalid paging input."""

    pass


__all__ = [
    "RepositoryException",
    "EntityNotFound",
    "RepositoryError",
    "DuplicateEntity",
    "InvalidQuery",
]

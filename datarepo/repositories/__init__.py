"""
Repositories Package
"""

from .base_repository import BaseRepository
from .exceptions import (
    DuplicateEntity,
    EntityNotFound,
    InvalidQuery,
    RepositoryError,
    RepositoryException,
)
from .query import UNORDERED, QueryBuilder, SortSpec

__all__ = [
    # Base Classes
    "BaseRepository",
    # Query Assembly
    "QueryBuilder",
    "SortSpec",
    "UNORDERED",
    # Exceptions
    "RepositoryException",
    "EntityNotFound",
    "DuplicateEntity",
    "RepositoryError",
    "InvalidQuery",
]

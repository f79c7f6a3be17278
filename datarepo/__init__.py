"""
datarepo - generic async repository layer over SQLAlchemy.

    ├── common/        - config, enums, clock, logging setup
    ├── database/      - AsyncDatabaseEngine (engine + session lifecycle)
    ├── models/        - declarative Base and timestamp mixins
    ├── schemas/       - EntitySchema (entity descriptor), PagedResult
    └── repositories/  - BaseRepository, QueryBuilder, exceptions
"""

from .models import Base, CreatedAtMixin, TimestampMixin
from .repositories import (
    UNORDERED,
    BaseRepository,
    DuplicateEntity,
    EntityNotFound,
    InvalidQuery,
    QueryBuilder,
    RepositoryError,
    RepositoryException,
    SortSpec,
)
from .schemas import EntitySchema, PagedResult, TimestampedEntitySchema

__all__ = [
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "EntitySchema",
    "TimestampedEntitySchema",
    "PagedResult",
    "BaseRepository",
    "QueryBuilder",
    "SortSpec",
    "UNORDERED",
    "RepositoryException",
    "EntityNotFound",
    "DuplicateEntity",
    "RepositoryError",
    "InvalidQuery",
]

__version__ = "1.0.0"

from .base import EntitySchema, TimestampedEntitySchema
from .pagination import PagedResult

__all__ = [
    "EntitySchema",
    "TimestampedEntitySchema",
    "PagedResult",
]

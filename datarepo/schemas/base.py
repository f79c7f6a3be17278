"""
Entity Descriptor Base

Every entity handled by a repository is a pydantic model deriving from
EntitySchema. It provides the two conversions the repository relies on:

    - to_map():          entity -> flat attribute map used for writes
    - from_record(rec):  ORM record -> entity, used by every read path

Partial updates:
    pydantic tracks which fields were explicitly set. to_map() only returns
    those, so an omitted field and a field explicitly set to None stay
    distinguishable:

        >>> AuthorEntity(score=None).to_map()
        {'score': None}
        >>> AuthorEntity().to_map()
        {}
"""

import logging
from datetime import datetime
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict
from sqlalchemy import inspect


logger = logging.getLogger(__name__)


def _loaded_attributes(record: Any, path: set[int]) -> dict[str, Any]:
    """
    Collect the attributes of an ORM record that are already loaded.

    Unloaded attributes are skipped so that no lazy load is triggered
    (lazy loading raises MissingGreenlet under AsyncSession).
    Eager-loaded relations are converted recursively into nested dicts.

    `path` holds the records being converted above this one. A record met
    again on its own path (author -> books -> author) contributes its
    columns only, so collections stay complete and the recursion ends.
    """
    state = inspect(record)
    unloaded = state.unloaded
    mapper = state.mapper

    data: dict[str, Any] = {}
    for attr in mapper.column_attrs:
        if attr.key not in unloaded:
            data[attr.key] = state.dict.get(attr.key)

    if id(record) in path:
        return data

    path.add(id(record))
    for rel in mapper.relationships:
        if rel.key in unloaded:
            continue
        value = state.dict.get(rel.key)
        if value is None:
            data[rel.key] = [] if rel.uselist else None
        elif rel.uselist:
            data[rel.key] = [_loaded_attributes(item, path) for item in value]
        else:
            data[rel.key] = _loaded_attributes(value, path)
    path.discard(id(record))

    return data


class EntitySchema(BaseModel):
    """
    Base class for repository entities.

    Attributes:
        id: Identity (None until persisted, immutable afterwards)
        relation_fields: Names of fields holding eager-loaded relations.
            They are filled by from_record() and never written by to_map().

    Example:
        >>> class AuthorEntity(EntitySchema):
        ...     relation_fields = frozenset({"books"})
        ...     name: str | None = None
        ...     books: list[BookEntity] | None = None
    """

    model_config = ConfigDict(from_attributes=True)

    relation_fields: ClassVar[frozenset[str]] = frozenset()

    id: int | None = None

    def to_map(self) -> dict[str, Any]:
        """Flat attribute map of the explicitly set, non-relation fields."""
        return self.model_dump(exclude_unset=True, exclude=set(self.relation_fields))

    @classmethod
    def from_record(cls, record: Any) -> Self:
        """Build the entity from an ORM record without triggering lazy loads."""
        data = _loaded_attributes(record, set())
        return cls.model_validate(data)


class TimestampedEntitySchema(EntitySchema):
    """Entity whose record type carries created_at / updated_at columns."""

    created_at: datetime | None = None
    updated_at: datetime | None = None

"""
Query Assembly

Condition, relation and sort specifications and the QueryBuilder that turns
them into SQLAlchemy statements for one record type.

Stages of QueryBuilder.build():
    1. WHERE   - AND of equality filters (column = value, None -> IS NULL)
    2. OPTIONS - selectinload() for each requested relation (dotted = nested)
    3. ORDER   - explicit SortSpec, default ordering, or none (UNORDERED)

Default ordering is the creation timestamp descending for timestamped record
types and id descending otherwise. Every ordering ends with an id tie-breaker
so that pages never overlap or skip rows sharing a sort key.

SELECTs do not overwrite records already present in the session's identity
map; eager loads only fill relations that are not loaded yet. Bulk UPDATE and
DELETE keep those records in sync through synchronize_session="evaluate".
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from sqlalchemy import Delete, Select, Update, delete, func, inspect, select, update
from sqlalchemy.orm import selectinload

from datarepo.common.enums import SortDirection
from datarepo.models.base import Base
from datarepo.repositories.exceptions import InvalidQuery
from datarepo.schemas.base import EntitySchema


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=Base)

Conditions = Mapping[str, Any] | EntitySchema | None
Relations = Iterable[str] | str | None


class Ordering(Enum):
    UNORDERED = "unordered"


# first / count / exists / batch 연산에서 기본 정렬을 끄는 신호
UNORDERED = Ordering.UNORDERED


@dataclass(frozen=True)
class SortSpec:
    """
    Column plus direction.

    column=None falls back to the record type's default sort column
    (created_at if timestamped, else id).
    """

    column: str | None = None
    descending: bool = True

    @classmethod
    def by(cls, column: str | None, direction: str | SortDirection = SortDirection.DESC) -> "SortSpec":
        try:
            parsed = SortDirection.parse(direction)
        except ValueError as e:
            raise InvalidQuery(str(e)) from e
        return cls(column=column, descending=parsed is SortDirection.DESC)


Sort = SortSpec | Ordering | None


def normalize_conditions(conditions: Conditions) -> dict[str, Any]:
    """Condition spec -> plain dict. Entities contribute their explicitly set fields."""
    if conditions is None:
        return {}
    if isinstance(conditions, EntitySchema):
        return conditions.to_map()
    if isinstance(conditions, Mapping):
        return dict(conditions)
    raise InvalidQuery(f"Unsupported condition spec: {type(conditions).__name__}")


def normalize_relations(relations: Relations) -> tuple[str, ...]:
    """Relation spec -> ordered tuple without duplicates."""
    if relations is None:
        return ()
    if isinstance(relations, str):
        relations = (relations,)

    names = tuple(dict.fromkeys(relations))
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise InvalidQuery(f"Invalid relation name: {name!r}")
    return names


class QueryBuilder(Generic[RecordT]):
    """
    Builds SELECT / COUNT / UPDATE / DELETE statements for one record type.

    Example:
        >>> builder = QueryBuilder(Author)
        >>> stmt = builder.build({"name": "x"}, ["books"], SortSpec("score", descending=False))
        >>> result = await session.execute(stmt)
    """

    def __init__(self, model: type[RecordT]) -> None:
        if model is None:
            raise ValueError("Model cannot be None")

        self.model: type[RecordT] = model
        self._mapper = inspect(model)
        self._columns = {attr.key for attr in self._mapper.column_attrs}

        if "id" not in self._columns:
            raise ValueError(f"{model.__name__} must define an 'id' identity column")

    # ===== Building Blocks =====

    def column(self, name: str) -> Any:
        """Mapped column attribute by name, InvalidQuery if unknown."""
        if name not in self._columns:
            raise InvalidQuery(f"Unknown column '{name}' for {self.model.__name__}")
        return getattr(self.model, name)

    def where_clauses(self, conditions: Conditions) -> list[Any]:
        return [self.column(key) == value for key, value in normalize_conditions(conditions).items()]

    def load_options(self, relations: Relations) -> list[Any]:
        return [self._load_option(path) for path in normalize_relations(relations)]

    def _load_option(self, path: str) -> Any:
        option = None
        current = self.model
        for name in path.split("."):
            rel = inspect(current).relationships.get(name)
            if rel is None:
                raise InvalidQuery(f"Unknown relation '{name}' in '{path}' for {current.__name__}")
            attr = getattr(current, name)
            option = selectinload(attr) if option is None else option.selectinload(attr)
            current = rel.mapper.class_
        return option

    def order_clauses(self, sort: Sort) -> list[Any]:
        if sort is UNORDERED:
            return []
        if sort is None:
            sort = SortSpec()

        column_name = sort.column or self.model.default_sort_column()
        order_col = self.column(column_name)
        clauses = [order_col.desc() if sort.descending else order_col.asc()]

        # id 보조 정렬 (동일 정렬 키를 가진 행의 순서 고정)
        if column_name != "id":
            identity = self.column("id")
            clauses.append(identity.desc() if sort.descending else identity.asc())
        return clauses

    def values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Validate write payload keys against the mapped columns."""
        for key in values:
            self.column(key)
        return dict(values)

    # ===== Statements =====

    def build(self, conditions: Conditions = None, relations: Relations = None, sort: Sort = None) -> Select:
        stmt = select(self.model)

        where = self.where_clauses(conditions)
        if where:
            stmt = stmt.where(*where)

        options = self.load_options(relations)
        if options:
            stmt = stmt.options(*options)

        order = self.order_clauses(sort)
        if order:
            stmt = stmt.order_by(*order)

        return stmt

    def paginate(self, stmt: Select, page: int, page_size: int) -> Select:
        if page < 1:
            raise InvalidQuery(f"Page must be >= 1, got {page}")
        if page_size < 1:
            raise InvalidQuery(f"Page size must be >= 1, got {page_size}")
        return stmt.offset((page - 1) * page_size).limit(page_size)

    def count_statement(self, conditions: Conditions = None) -> Select:
        stmt = select(func.count()).select_from(self.model)

        where = self.where_clauses(conditions)
        if where:
            stmt = stmt.where(*where)
        return stmt

    def exists_statement(self, conditions: Conditions = None) -> Select:
        """SELECT EXISTS(...) - stops at the first matching row."""
        subquery = select(self.column("id"))

        where = self.where_clauses(conditions)
        if where:
            subquery = subquery.where(*where)
        return select(subquery.exists())

    # UPDATE / DELETE 는 identity map의 객체에도 같은 조건을 적용 (evaluate)
    def update_statement(self, conditions: Conditions, values: Mapping[str, Any]) -> Update:
        stmt = update(self.model)

        where = self.where_clauses(conditions)
        if where:
            stmt = stmt.where(*where)

        return stmt.values(**self.values(values)).execution_options(synchronize_session="evaluate")

    def delete_statement(self, conditions: Conditions) -> Delete:
        stmt = delete(self.model)

        where = self.where_clauses(conditions)
        if where:
            stmt = stmt.where(*where)

        return stmt.execution_options(synchronize_session="evaluate")


__all__ = [
    "Conditions",
    "Relations",
    "Sort",
    "SortSpec",
    "Ordering",
    "UNORDERED",
    "QueryBuilder",
    "normalize_conditions",
    "normalize_relations",
]

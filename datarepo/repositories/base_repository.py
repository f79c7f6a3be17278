"""
Base Repository Class - Async Repository Pattern

Generic repository over one (Record, Entity) pairing:

    - Record: SQLAlchemy declarative model (datarepo.models.Base subclass)
    - Entity: pydantic EntitySchema subclass (to_map / from_record)

Callers never see ORM records: every read converts through
Entity.from_record(), every write goes through Entity.to_map().

Transactions:
    The repository flushes but never commits. The caller owns the
    AsyncSession and its transaction (AsyncDatabaseEngine.get_session()
    commits on success, rolls back on error). A failed write rolls the
    session back and raises immediately; there are no retries.

Example:
    >>> class AuthorRepository(BaseRepository[Author, AuthorEntity]):
    ...     model = Author
    ...     entity = AuthorEntity
    >>>
    >>> async with engine.get_session() as session:
    ...     repo = AuthorRepository(session)
    ...     author = await repo.create(AuthorEntity(name="Kim", score=1))
    ...     recent = await repo.get({"name": "Kim"}, ["books"])
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import insert, inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from datarepo.common.config import REPOSITORY_CONFIG
from datarepo.common.utils import Clock, utc_now
from datarepo.models.base import Base
from datarepo.repositories.exceptions import DuplicateEntity, EntityNotFound, InvalidQuery, RepositoryError
from datarepo.repositories.query import (
    UNORDERED,
    Conditions,
    QueryBuilder,
    Relations,
    Sort,
    normalize_conditions,
)
from datarepo.schemas.base import EntitySchema
from datarepo.schemas.pagination import PagedResult


logger = logging.getLogger(__name__)

# Type variables for record (ORM model) and entity (schema) classes
RecordT = TypeVar("RecordT", bound=Base)
EntityT = TypeVar("EntityT", bound=EntitySchema)

Payload = EntitySchema | Mapping[str, Any]


class BaseRepository(Generic[RecordT, EntityT]):
    """
    Async CRUD + query + upsert + batch operations for one record type.

    Attributes:
        session: SQLAlchemy AsyncSession (the persistence backend)
        model: SQLAlchemy ORM model class
        entity: EntitySchema subclass returned to callers
        clock: Current-time source used for batch timestamps
    """

    # Concrete subclasses may set these instead of passing them to __init__
    model: type[RecordT] | None = None
    entity: type[EntityT] | None = None

    def __init__(
        self,
        session: AsyncSession,
        model: type[RecordT] | None = None,
        entity: type[EntityT] | None = None,
        clock: Clock | None = None,
    ) -> None:
        if session is None:
            raise ValueError("AsyncSession cannot be None")

        self.session: AsyncSession = session
        self.model = model or self.model
        self.entity = entity or self.entity

        if self.model is None:
            raise NotImplementedError(f"{self.__class__.__name__} must define 'model' class attribute")
        if self.entity is None or not issubclass(self.entity, EntitySchema):
            raise NotImplementedError(f"{self.__class__.__name__} must define an EntitySchema 'entity'")

        self.clock: Clock = clock or utc_now
        self.query = QueryBuilder(self.model)
        self._name = self.model.__name__

        logger.debug(f"Initialized {self.__class__.__name__} for model {self._name}")

    # ===== Conversion Helpers =====

    def _to_entity(self, record: RecordT) -> EntityT:
        return self.entity.from_record(record)

    @staticmethod
    def _as_map(payload: Payload | None) -> dict[str, Any]:
        if payload is None:
            return {}
        if isinstance(payload, EntitySchema):
            return payload.to_map()
        if isinstance(payload, Mapping):
            return dict(payload)
        raise InvalidQuery(f"Unsupported payload type: {type(payload).__name__}")

    def _patch(self, values: Payload | None, current_id: Any = None) -> dict[str, Any]:
        """
        Write payload for an existing row. The identity may be repeated but never changed.
        """
        data = self._as_map(values)
        if "id" in data:
            new_id = data.pop("id")
            if new_id is not None and new_id != current_id:
                raise InvalidQuery(f"Cannot change identity of {self._name} {current_id} to {new_id}")
        return self.query.values(data)

    async def _flush_failed(self, action: str, error: SQLAlchemyError) -> RepositoryError:
        """Roll back and translate a backend failure."""
        await self.session.rollback()

        if isinstance(error, IntegrityError):
            pgcode = getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)
            if pgcode == "23505" or "unique" in str(error).lower():  # PostgreSQL unique violation code
                logger.warning(f"Duplicate {self._name} on {action}: {error}")
                return DuplicateEntity(f"{self._name} already exists: {error.orig}")
            logger.error(f"Integrity error on {action} {self._name}: {error}")
            return RepositoryError(f"Database integrity error: {error.orig}")

        logger.error(f"Error on {action} {self._name}: {error}")
        return RepositoryError(f"Failed to {action} {self._name}: {error}")

    async def _fetch_by_id(self, id: Any, relations: Relations = None) -> RecordT | None:
        stmt = self.query.build({"id": id}, relations, UNORDERED)
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting {self._name} by id {id}: {e}")
            raise RepositoryError(f"Failed to get entity: {e}") from e

    async def _fetch_first(self, conditions: Conditions, relations: Relations, sort: Sort) -> RecordT | None:
        stmt = self.query.build(conditions, relations, sort).limit(1)
        try:
            result = await self.session.execute(stmt)
            return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting first {self._name}: {e}")
            raise RepositoryError(f"Failed to get entity: {e}") from e

    def _new_row(self, data: dict[str, Any]) -> dict[str, Any]:
        row = self.query.values(data)
        # id=None은 "아직 저장 전"을 뜻하므로 DB가 생성하도록 제거
        if row.get("id", 0) is None:
            del row["id"]
        return row

    @staticmethod
    def _has_unloaded_columns(db_obj: RecordT) -> bool:
        """True if the flush left server-generated columns expired."""
        state = inspect(db_obj)
        return any(attr.key in state.unloaded for attr in state.mapper.column_attrs)

    async def _insert(self, data: dict[str, Any]) -> RecordT:
        db_obj = self.model(**self._new_row(data))
        self.session.add(db_obj)

        try:
            await self.session.flush()  # Flush to get auto-generated id
            if self._has_unloaded_columns(db_obj):
                await self.session.refresh(db_obj)
        except SQLAlchemyError as e:
            raise await self._flush_failed("create", e) from e

        logger.debug(f"Created {self._name} with id {db_obj.id}")
        return db_obj

    async def _save(self, db_obj: RecordT, data: dict[str, Any]) -> RecordT:
        updated_col = self.model.timestamp_columns()[1]
        if data and updated_col and updated_col not in data:
            data[updated_col] = self.clock()

        for key, value in data.items():
            setattr(db_obj, key, value)

        try:
            await self.session.flush()
            if self._has_unloaded_columns(db_obj):
                await self.session.refresh(db_obj)
        except SQLAlchemyError as e:
            raise await self._flush_failed("update", e) from e

        logger.debug(f"Updated {self._name} with id {db_obj.id}: {sorted(data)}")
        return db_obj

    # ===== CRUD Operations =====

    async def create(self, attributes: Payload) -> EntityT:
        """
        Create and persist a new entity.

        Returns:
            Entity rebuilt from the stored record (id and timestamps filled)

        Raises:
            DuplicateEntity: If unique constraint violation occurs
            RepositoryError: On database operation failure
            InvalidQuery: If attributes name unknown columns
        """
        db_obj = await self._insert(self._as_map(attributes))
        return self._to_entity(db_obj)

    async def get(self, conditions: Conditions = None, relations: Relations = None, sort: Sort = None) -> list[EntityT]:
        """
        All entities matching `conditions`, eager-loading `relations`.

        Without `sort`, the newest rows come first (created_at desc, or id desc
        for record types without timestamps).
        """
        stmt = self.query.build(conditions, relations, sort)
        try:
            result = await self.session.execute(stmt)
            objs = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing {self._name}: {e}")
            raise RepositoryError(f"Failed to list entities: {e}") from e

        logger.debug(f"Retrieved {len(objs)} {self._name} entities")
        return [self._to_entity(obj) for obj in objs]

    async def paginate(
        self,
        conditions: Conditions = None,
        relations: Relations = None,
        page_size: int | None = None,
        sort: Sort = None,
        page: int = 1,
    ) -> PagedResult[EntityT]:
        """
        One page of get() results plus the total count.

        Args:
            page_size: Items per page (None = REPOSITORY_CONFIG["default_page_size"])
            page: 1-indexed page number

        Raises:
            InvalidQuery: If page or page_size is below 1
        """
        if page_size is None:
            page_size = REPOSITORY_CONFIG["default_page_size"]

        stmt = self.query.paginate(self.query.build(conditions, relations, sort), page, page_size)
        try:
            total = (await self.session.execute(self.query.count_statement(conditions))).scalar_one()
            result = await self.session.execute(stmt)
            objs = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error paginating {self._name}: {e}")
            raise RepositoryError(f"Failed to paginate entities: {e}") from e

        logger.debug(f"Retrieved page {page} ({len(objs)}/{total}) of {self._name}")
        return PagedResult[self.entity](
            items=[self._to_entity(obj) for obj in objs],
            total=total,
            page_size=page_size,
            page=page,
        )

    async def find_by_id(self, id: Any, relations: Relations = None) -> EntityT | None:
        """Entity with primary key `id`, or None."""
        obj = await self._fetch_by_id(id, relations)
        return self._to_entity(obj) if obj is not None else None

    async def find_by_id_or_fail(self, id: Any, relations: Relations = None) -> EntityT:
        """Entity with primary key `id`; EntityNotFound if absent."""
        obj = await self._fetch_by_id(id, relations)
        if obj is None:
            raise EntityNotFound(self._name, identifier=id)
        return self._to_entity(obj)

    async def first(self, conditions: Conditions = None, relations: Relations = None, sort: Sort = UNORDERED) -> EntityT | None:
        """First matching entity, or None. No default ordering is applied."""
        obj = await self._fetch_first(conditions, relations, sort)
        return self._to_entity(obj) if obj is not None else None

    async def first_or_fail(
        self, conditions: Conditions = None, relations: Relations = None, sort: Sort = UNORDERED
    ) -> EntityT:
        """First matching entity; EntityNotFound if none matches."""
        obj = await self._fetch_first(conditions, relations, sort)
        if obj is None:
            raise EntityNotFound(self._name, conditions=normalize_conditions(conditions))
        return self._to_entity(obj)

    async def count(self, conditions: Conditions = None) -> int:
        """Count entities matching optional filter criteria."""
        try:
            result = await self.session.execute(self.query.count_statement(conditions))
            count = result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting {self._name}: {e}")
            raise RepositoryError(f"Failed to count entities: {e}") from e

        logger.debug(f"Counted {count} {self._name} entities")
        return count

    async def exists(self, conditions: Conditions = None) -> bool:
        """True if at least one entity matches."""
        try:
            result = await self.session.execute(self.query.exists_statement(conditions))
            found = bool(result.scalar())
        except SQLAlchemyError as e:
            logger.error(f"Error checking existence of {self._name}: {e}")
            raise RepositoryError(f"Failed to check existence: {e}") from e

        logger.debug(f"{self._name} exists={found} for {normalize_conditions(conditions)}")
        return found

    async def update(self, id: Any, values: Payload) -> EntityT:
        """
        Merge the explicitly set fields of `values` into the stored entity.

        Fields absent from `values` are left untouched; a field explicitly set
        to None is written as NULL. Timestamped records get their update
        timestamp from the clock unless `values` sets it.

        Raises:
            EntityNotFound: If entity with id not found
            DuplicateEntity: On unique constraint violation
            RepositoryError: If the backend rejects the save
        """
        data = self._patch(values, current_id=id)
        db_obj = await self._fetch_by_id(id)
        if db_obj is None:
            raise EntityNotFound(self._name, identifier=id)

        db_obj = await self._save(db_obj, data)
        return self._to_entity(db_obj)

    async def first_or_create(self, attributes: Payload, values: Payload | None = None) -> EntityT:
        """
        First entity matching `attributes`, created from attributes + values if absent.

        An existing entity is returned unmodified; `values` only apply on creation.
        """
        lookup = self._as_map(attributes)
        db_obj = await self._fetch_first(lookup, None, UNORDERED)
        if db_obj is not None:
            logger.debug(f"first_or_create found {self._name} with id {db_obj.id}")
            return self._to_entity(db_obj)

        db_obj = await self._insert({**lookup, **self._as_map(values)})
        return self._to_entity(db_obj)

    async def update_or_create(self, attributes: Payload, values: Payload | None = None) -> EntityT:
        """
        Update the entity matching `attributes` with `values`, or create it from both.

        Repeating the call with the same arguments updates the row created by
        the first call instead of inserting another one.
        """
        lookup = self._as_map(attributes)
        db_obj = await self._fetch_first(lookup, None, UNORDERED)
        if db_obj is not None:
            db_obj = await self._save(db_obj, self._patch(values, current_id=db_obj.id))
            return self._to_entity(db_obj)

        db_obj = await self._insert({**lookup, **self._as_map(values)})
        return self._to_entity(db_obj)

    async def delete_by_id(self, id: Any) -> bool:
        """
        Delete an entity by primary key (hard delete).

        Raises:
            EntityNotFound: If entity with id not found
            RepositoryError: On database operation failure
        """
        db_obj = await self._fetch_by_id(id)
        if db_obj is None:
            raise EntityNotFound(self._name, identifier=id)

        try:
            await self.session.delete(db_obj)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise await self._flush_failed("delete", e) from e

        logger.debug(f"Deleted {self._name} with id {id}")
        return True

    # ===== Batch Operations =====

    async def batch_insert(self, entities: Sequence[Payload]) -> bool:
        """
        Insert all rows with one executemany call; all-or-nothing.

        For timestamped record types every row gets the same creation and
        update instant (one clock read for the whole batch).
        """
        rows = [self._new_row(self._as_map(entity)) for entity in entities]
        if not rows:
            return True

        if self.model.is_timestamped():
            now = self.clock()
            created_col, updated_col = self.model.timestamp_columns()
            for row in rows:
                if created_col:
                    row[created_col] = now
                if updated_col:
                    row[updated_col] = now

        try:
            await self.session.execute(insert(self.model), rows)
        except SQLAlchemyError as e:
            raise await self._flush_failed("batch insert", e) from e

        logger.debug(f"Batch inserted {len(rows)} {self._name} rows")
        return True

    async def batch_update(self, conditions: Conditions, values: Payload) -> int:
        """
        Apply `values` to every row matching `conditions` with one UPDATE.

        Returns:
            Number of affected rows
        """
        data = self._patch(values)
        if not data:
            return 0

        updated_col = self.model.timestamp_columns()[1]
        if updated_col and updated_col not in data:
            data[updated_col] = self.clock()

        stmt = self.query.update_statement(conditions, data)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._flush_failed("batch update", e) from e

        logger.debug(f"Batch updated {result.rowcount} {self._name} rows")
        return result.rowcount

    async def batch_delete(self, conditions: Conditions) -> int:
        """
        Delete every row matching `conditions` with one DELETE.

        Returns:
            Number of deleted rows
        """
        stmt = self.query.delete_statement(conditions)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._flush_failed("batch delete", e) from e

        logger.debug(f"Batch deleted {result.rowcount} {self._name} rows")
        return result.rowcount


__all__ = [
    "BaseRepository",
]

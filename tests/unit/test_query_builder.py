"""
Unit Tests: Query Assembly

QueryBuilder statements are compiled to SQL strings; no database needed.
"""

import pytest

from datarepo.common.enums import SortDirection
from datarepo.repositories import UNORDERED, InvalidQuery, QueryBuilder, SortSpec
from datarepo.repositories.query import normalize_conditions, normalize_relations
from tests.sample_models import Author, AuthorEntity, Book


def _sql(stmt) -> str:
    return str(stmt.compile(compile_kwargs={"literal_binds": True}))


@pytest.fixture
def authors() -> QueryBuilder:
    return QueryBuilder(Author)


@pytest.fixture
def books() -> QueryBuilder:
    return QueryBuilder(Book)


@pytest.mark.unit
class TestOrdering:
    """Default, explicit and disabled ordering."""

    def test_default_ordering_timestamped(self, authors):
        sql = _sql(authors.build())
        assert "ORDER BY authors.created_at DESC, authors.id DESC" in sql

    def test_default_ordering_untimestamped(self, books):
        sql = _sql(books.build())
        assert sql.endswith("ORDER BY books.id DESC")

    def test_explicit_sort_adds_id_tiebreaker(self, authors):
        sql = _sql(authors.build(sort=SortSpec("name", descending=False)))
        assert "ORDER BY authors.name ASC, authors.id ASC" in sql

    def test_sort_by_id_has_no_duplicate_tiebreaker(self, authors):
        sql = _sql(authors.build(sort=SortSpec("id", descending=False)))
        assert sql.endswith("ORDER BY authors.id ASC")

    def test_unordered(self, authors):
        assert "ORDER BY" not in _sql(authors.build(sort=UNORDERED))

    def test_unknown_sort_column(self, authors):
        with pytest.raises(InvalidQuery):
            authors.build(sort=SortSpec("nickname"))

    def test_sort_spec_by_direction(self):
        assert SortSpec.by("name", "asc") == SortSpec("name", descending=False)
        assert SortSpec.by("name", SortDirection.DESC) == SortSpec("name", descending=True)

    def test_sort_spec_invalid_direction(self):
        with pytest.raises(InvalidQuery):
            SortSpec.by("name", "sideways")


@pytest.mark.unit
class TestFiltering:
    """Equality-conjunction WHERE clauses."""

    def test_no_conditions_no_where(self, authors):
        assert "WHERE" not in _sql(authors.build())
        assert "WHERE" not in _sql(authors.build({}))

    def test_conjunction(self, authors):
        sql = _sql(authors.build({"name": "x", "score": 1}))
        assert "WHERE authors.name = 'x' AND authors.score = 1" in sql

    def test_none_becomes_is_null(self, authors):
        assert "authors.score IS NULL" in _sql(authors.build({"score": None}))

    def test_entity_condition(self, authors):
        sql = _sql(authors.build(AuthorEntity(name="x")))
        assert "WHERE authors.name = 'x'" in sql
        assert "authors.score =" not in sql

    def test_unknown_column(self, authors):
        with pytest.raises(InvalidQuery):
            authors.build({"nickname": "x"})

    def test_unsupported_condition_type(self):
        with pytest.raises(InvalidQuery):
            normalize_conditions(["name", "x"])


@pytest.mark.unit
class TestRelations:
    """Relation specs and eager-load options."""

    def test_normalize_relations_dedupes_in_order(self):
        assert normalize_relations(["books", "books.reviews", "books"]) == ("books", "books.reviews")

    def test_normalize_single_string(self):
        assert normalize_relations("books") == ("books",)

    def test_normalize_empty(self):
        assert normalize_relations(None) == ()
        assert normalize_relations([]) == ()

    def test_invalid_relation_name(self):
        with pytest.raises(InvalidQuery):
            normalize_relations(["books", ""])

    def test_load_options_per_relation(self, authors):
        assert len(authors.load_options(["books", "books.reviews"])) == 2

    def test_unknown_relation(self, authors):
        with pytest.raises(InvalidQuery):
            authors.load_options(["publisher"])

    def test_unknown_nested_relation(self, authors):
        with pytest.raises(InvalidQuery):
            authors.load_options(["books.publisher"])


@pytest.mark.unit
class TestStatements:
    """Pagination, count, update and delete statements."""

    def test_paginate(self, authors):
        sql = _sql(authors.paginate(authors.build(), page=3, page_size=5))
        assert "LIMIT 5 OFFSET 10" in sql

    @pytest.mark.parametrize("page,page_size", [(0, 5), (1, 0), (-1, -1)])
    def test_paginate_rejects_bad_input(self, authors, page, page_size):
        with pytest.raises(InvalidQuery):
            authors.paginate(authors.build(), page=page, page_size=page_size)

    def test_count_statement_has_no_ordering(self, authors):
        sql = _sql(authors.count_statement({"name": "x"}))
        assert sql.startswith("SELECT count(*)")
        assert "WHERE authors.name = 'x'" in sql
        assert "ORDER BY" not in sql

    def test_exists_statement(self, authors):
        sql = _sql(authors.exists_statement({"name": "x"}))
        assert sql.startswith("SELECT EXISTS (SELECT authors.id")
        assert "WHERE authors.name = 'x'" in sql
        assert "count(*)" not in sql
        assert "ORDER BY" not in sql

    def test_exists_statement_without_conditions(self, authors):
        assert "WHERE" not in _sql(authors.exists_statement())

    def test_update_statement(self, authors):
        sql = _sql(authors.update_statement({"name": "x"}, {"score": 9}))
        assert sql.startswith("UPDATE authors SET score=")
        assert "WHERE authors.name = 'x'" in sql

    def test_update_statement_unknown_value_column(self, authors):
        with pytest.raises(InvalidQuery):
            authors.update_statement({"name": "x"}, {"nickname": "y"})

    def test_delete_statement(self, authors):
        assert _sql(authors.delete_statement({"name": "x"})) == "DELETE FROM authors WHERE authors.name = 'x'"

    def test_model_required(self):
        with pytest.raises(ValueError):
            QueryBuilder(None)

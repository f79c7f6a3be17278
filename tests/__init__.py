"""
Test Suite for datarepo

Test Structure:
    tests/
    ├── conftest.py           - Shared fixtures (in-memory aiosqlite engine, repositories)
    ├── sample_models.py      - Author / Book / Review records, entities and repositories
    ├── integration/          - Tests running against the database
    │   ├── test_db_connection.py
    │   └── test_repositories.py
    └── unit/                 - Statement building and conversions, no database
        ├── test_common.py
        ├── test_entity_schema.py
        └── test_query_builder.py

Usage:
    # Run all tests
    pytest tests/ -v

    # Run only integration tests
    pytest tests/integration/ -v

    # Run only unit tests
    pytest -m unit -v

Requirements:
    - pytest>=7.4.0
    - pytest-asyncio>=0.21.0
    - aiosqlite>=0.19.0
"""

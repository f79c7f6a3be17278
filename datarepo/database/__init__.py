"""
Database Package - Engine and Session Management

    ├── connection.py - Async engine and session management

Usage:
    >>> from datarepo.database import AsyncDatabaseEngine
    >>>
    >>> engine = AsyncDatabaseEngine()
    >>> await engine.initialize()
    >>>
    >>> async with engine.get_session() as session:
    ...     repo = AuthorRepository(session)
    ...     authors = await repo.get()
"""

from .connection import AsyncDatabaseEngine, build_database_url, get_db

__all__ = [
    "AsyncDatabaseEngine",
    "build_database_url",
    "get_db",
]

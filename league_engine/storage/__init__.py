"""
Storage module for league data.

Provides a unified interface over the persistence backend:
- SQLite (local development, self-hosted)

Usage:
    from league_engine.storage import get_database

    db = get_database()  # Uses DB_TYPE env var
    divisions = db.get_divisions()
"""

from .base import DatabaseInterface
from .factory import get_database, reset_database
from .exceptions import (
    DatabaseError,
    ConnectionError,
    ConfigurationError,
    SchemaError,
    QueryError,
    IntegrityError
)

__all__ = [
    'DatabaseInterface',
    'get_database',
    'reset_database',
    'DatabaseError',
    'ConnectionError',
    'ConfigurationError',
    'SchemaError',
    'QueryError',
    'IntegrityError'
]

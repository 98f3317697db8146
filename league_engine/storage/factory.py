"""
Factory function to create the database implementation.

Reads configuration from environment variables to determine which
database backend to use.
"""

import os
from typing import Optional

from .base import DatabaseInterface
from .exceptions import ConfigurationError


# Singleton instance
_db_instance: Optional[DatabaseInterface] = None


def _data_dir() -> str:
    """Resolve the data directory (same priority as config.DATA_DIR)."""
    return (
        os.environ.get('DATA_DIR') or
        os.environ.get('RAILWAY_VOLUME_MOUNT_PATH') or
        ('/app/data' if os.path.exists('/app') else 'data')
    )


def get_database() -> DatabaseInterface:
    """
    Get or create the database instance.

    Uses the DB_TYPE environment variable to determine which implementation:
    - "sqlite" (default): Local SQLite database in DATA_DIR/league.db

    The environment is read when the singleton is first created, so tests
    can point DATA_DIR at a temporary directory and call reset_database().

    Returns:
        DatabaseInterface implementation

    Raises:
        ConfigurationError: If DB_TYPE names an unknown backend
    """
    global _db_instance

    if _db_instance is not None:
        return _db_instance

    db_type = os.environ.get('DB_TYPE', 'sqlite').lower()
    print(f"[*] Database type: {db_type}")

    if db_type == 'sqlite':
        from .sqlite_db import SQLiteDatabase

        db_path = os.path.join(_data_dir(), 'league.db')
        _db_instance = SQLiteDatabase(db_path=db_path)

    else:
        raise ConfigurationError(
            f"Unknown DB_TYPE: {db_type}. "
            f"Valid options: sqlite"
        )

    # Initialize the database
    _db_instance.initialize()

    return _db_instance


def reset_database() -> None:
    """
    Reset the database singleton.

    Used for testing or when switching configurations.
    """
    global _db_instance
    if _db_instance is not None:
        _db_instance.close()
        _db_instance = None

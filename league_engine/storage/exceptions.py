"""
Custom exceptions for the league storage layer.

- DatabaseError: Base exception for all database errors
- ConnectionError: The database file could not be opened
- ConfigurationError: Unknown DB_TYPE or unusable data directory
- SchemaError: Tables could not be created
- QueryError: A statement failed or received invalid arguments
- IntegrityError: A uniqueness rule was broken (e.g. two groups with one code)
"""


class DatabaseError(Exception):
    """Base exception for all database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to open the database."""
    pass


class ConfigurationError(DatabaseError):
    """Missing or invalid database configuration."""
    pass


class SchemaError(DatabaseError):
    """Error creating the league schema."""
    pass


class QueryError(DatabaseError):
    """Error executing a query."""
    pass


class IntegrityError(QueryError):
    """A row conflicts with a uniqueness rule."""
    pass

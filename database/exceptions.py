"""Database exceptions."""

class DatabaseError(Exception):
    """Base exception for database operations."""
    pass

class DatabaseSchemaError(DatabaseError):
    """Raised when schema loading or migration fails."""
    pass

class PoolTimeoutError(DatabaseError):
    """Raised when no pooled connection became available in time."""
    pass

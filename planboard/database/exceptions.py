"""
Errors raised by repositories.

Services catch these and translate them into the caller-facing errors in
planboard.services.exceptions; nothing outside the services should see them.
"""


class DatabaseError(Exception):
    """Base class for persistence failures."""


class DatabaseConstraintError(DatabaseError):
    """A unique or foreign key constraint rejected the write (duplicate key, duplicate board, lost insert race)."""


class DatabaseConcurrencyError(DatabaseError):
    """A board column changed since it was read: its version token no longer matches."""


class DatabaseOperationError(DatabaseError):
    """Any other failed read or write."""

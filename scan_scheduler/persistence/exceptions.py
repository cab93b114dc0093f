"""Persistence layer exceptions.

All storage exceptions inherit from PersistenceError so callers can catch
every storage failure with a single except clause. Validation failures are
not persistence errors: they surface as ScheduleValidationError.
"""


class PersistenceError(Exception):
    """Base exception for all storage errors."""

    pass


class StorageCorruptedError(PersistenceError):
    """The storage file (or a backup) cannot be trusted.

    Examples:
    - Invalid JSON
    - Top-level structure is not an object with a ``schedules`` list
    - A stored schedule fails validation
    """

    pass


class StorageWriteError(PersistenceError):
    """Writing or atomically replacing the storage file failed.

    The previously committed file is left untouched when this is raised.
    """

    pass


class ScheduleNotFoundError(PersistenceError, LookupError):
    """No stored schedule has the requested ID or name."""

    pass


class DataIntegrityError(PersistenceError):
    """A write would break a uniqueness invariant."""

    pass


class DuplicateScheduleError(DataIntegrityError):
    """Another stored schedule already uses the same ID or name."""

    pass

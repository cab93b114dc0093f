"""Persistence layer for schedules using a single JSON file.

This module provides the public API for schedule storage including:
- JSONScheduleStorage for CRUD, backup, and restore
- The in-process reader/writer lock that serializes access
- Custom exceptions for error handling

Public API:
    - JSONScheduleStorage(file_path): CRUD operations for schedules
    - open_storage(file_path) -> JSONScheduleStorage
    - ReadWriteLock: shared/exclusive lock used by the storage

    # Exceptions
    - PersistenceError: Base exception for all persistence errors
    - StorageCorruptedError: Invalid JSON, structure, or stored record
    - StorageWriteError: Writing or replacing the file failed
    - ScheduleNotFoundError: No schedule with the requested ID or name
    - DuplicateScheduleError: ID or name already in use

Example usage:
    >>> from scan_scheduler.persistence import open_storage
    >>>
    >>> storage = open_storage("~/.scan-scheduler/schedules.json")
    >>> for schedule in storage.load_schedules():
    ...     print(schedule.name, schedule.next_run)
"""

from .exceptions import (
    DataIntegrityError,
    DuplicateScheduleError,
    PersistenceError,
    ScheduleNotFoundError,
    StorageCorruptedError,
    StorageWriteError,
)
from .locks import ReadWriteLock
from .storage import SCHEMA_VERSION, JSONScheduleStorage, open_storage

__all__ = [
    # Storage
    "JSONScheduleStorage",
    "open_storage",
    "ReadWriteLock",
    "SCHEMA_VERSION",
    # Exceptions
    "PersistenceError",
    "StorageCorruptedError",
    "StorageWriteError",
    "ScheduleNotFoundError",
    "DataIntegrityError",
    "DuplicateScheduleError",
]

"""JSON file storage for schedules.

The whole collection lives in one file::

    {"schedules": [...], "last_updated": "2025-03-01T08:12:40", "version": "1.0"}

Every mutation rewrites the full collection to a temporary file in the same
directory and atomically renames it over the original, so readers never see
a partially written file and a crash mid-write leaves the last committed file
in place. Within a process, reads take a shared lock and writes an exclusive
one. There is no cross-process lock: run a single daemon per storage file.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from scan_scheduler.domain.exceptions import ScheduleValidationError
from scan_scheduler.domain.models import Schedule, schedule_from_dict
from scan_scheduler.logging import get_logger
from scan_scheduler.utils.paths import ensure_parent_directory, expand_path
from scan_scheduler.utils.timestamps import backup_suffix, local_now

from .exceptions import (
    DuplicateScheduleError,
    PersistenceError,
    ScheduleNotFoundError,
    StorageCorruptedError,
    StorageWriteError,
)
from .locks import ReadWriteLock

logger = get_logger(__name__, component="storage")

SCHEMA_VERSION = "1.0"
FILE_MODE = 0o600


class StorageData(BaseModel):
    """In-memory image of the storage file."""

    schedules: List[Schedule] = Field(default_factory=list)
    last_updated: datetime
    version: str = SCHEMA_VERSION

    def to_document(self) -> Dict[str, Any]:
        return {
            "schedules": [schedule.to_record() for schedule in self.schedules],
            "last_updated": self.last_updated.isoformat(),
            "version": self.version,
        }


class JSONScheduleStorage:
    """CRUD over schedules keyed by ID, persisted as a single JSON file."""

    def __init__(
        self,
        file_path: Union[str, Path],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            file_path: Storage file location (``~`` is expanded)
            clock: Source of "now" for ``last_updated`` (defaults to local_now)
        """
        self.file_path = expand_path(file_path)
        self._clock = clock or local_now
        self._lock = ReadWriteLock()

    def initialize(self) -> None:
        """
        Create the storage file if missing, then validate it.

        Raises:
            StorageWriteError: If the directory or initial file cannot be created
            StorageCorruptedError: If an existing file is invalid
        """
        with self._lock.write_locked():
            try:
                ensure_parent_directory(self.file_path)
            except OSError as e:
                raise StorageWriteError(
                    f"Failed to create storage directory {self.file_path.parent}: {e}"
                ) from e

            if not self.file_path.exists():
                logger.info(
                    f"Creating schedule storage at {self.file_path}",
                    extra={"event": "storage.created", "path": str(self.file_path)},
                )
                self._write_data(StorageData(last_updated=self._clock()))

            data = self._read_data()

        logger.info(
            "Schedule storage initialized",
            extra={
                "event": "storage.initialized",
                "path": str(self.file_path),
                "schedule_count": len(data.schedules),
                "version": data.version,
            },
        )

    def save_schedule(self, schedule: Schedule) -> None:
        """
        Persist a new schedule.

        Raises:
            ScheduleValidationError: If the schedule is invalid
            DuplicateScheduleError: If the ID or name is already stored
            PersistenceError: If reading or writing the file fails
        """
        self._validate(schedule)

        with self._lock.write_locked():
            data = self._read_data()

            for existing in data.schedules:
                if existing.id == schedule.id:
                    raise DuplicateScheduleError(f"schedule with ID {schedule.id} already exists")
                if existing.name == schedule.name:
                    raise DuplicateScheduleError(
                        f"schedule with name '{schedule.name}' already exists"
                    )

            data.schedules.append(schedule.model_copy(deep=True))
            data.last_updated = self._clock()
            self._write_data(data)

        logger.info(
            f"Saved schedule {schedule.name}",
            extra={"event": "storage.schedule.saved", "schedule_id": schedule.id},
        )

    def load_schedules(self) -> List[Schedule]:
        """All stored schedules, as copies."""
        with self._lock.read_locked():
            data = self._read_data()
        return data.schedules

    def update_schedule(self, schedule: Schedule) -> None:
        """
        Replace the stored schedule that has the same ID.

        Raises:
            ScheduleValidationError: If the schedule is invalid
            ScheduleNotFoundError: If no schedule has this ID
            DuplicateScheduleError: If the new name belongs to another schedule
            PersistenceError: If reading or writing the file fails
        """
        self._validate(schedule)

        with self._lock.write_locked():
            data = self._read_data()

            index = self._index_of(data, schedule.id)
            if index is None:
                raise ScheduleNotFoundError(f"schedule with ID {schedule.id} not found")

            for position, other in enumerate(data.schedules):
                if position != index and other.name == schedule.name:
                    raise DuplicateScheduleError(
                        f"schedule with name '{schedule.name}' already exists"
                    )

            data.schedules[index] = schedule.model_copy(deep=True)
            data.last_updated = self._clock()
            self._write_data(data)

        logger.debug(
            f"Updated schedule {schedule.name}",
            extra={"event": "storage.schedule.updated", "schedule_id": schedule.id},
        )

    def record_run(
        self,
        schedule_id: str,
        ran_at: datetime,
        next_run_for: Callable[[Schedule], datetime],
    ) -> Optional[Schedule]:
        """
        Set ``last_run`` and ``next_run`` on the currently stored schedule.

        Only the two timestamps are written; every other field keeps its stored
        value, so edits made while the scan was executing survive. The next run
        is computed from the stored copy under the write lock.

        Args:
            schedule_id: ID of the schedule that ran
            ran_at: Tick time stored as ``last_run``
            next_run_for: Computes the next run from the stored schedule

        Returns:
            The updated schedule, or None if it has been disabled meanwhile
            (nothing is written in that case)

        Raises:
            ScheduleNotFoundError: If the schedule has been deleted
            ScheduleValidationError, CalculationError: Propagated from ``next_run_for``
            PersistenceError: If reading or writing the file fails
        """
        with self._lock.write_locked():
            data = self._read_data()

            index = self._index_of(data, schedule_id)
            if index is None:
                raise ScheduleNotFoundError(f"schedule with ID {schedule_id} not found")

            schedule = data.schedules[index]
            if not schedule.enabled:
                return None

            schedule.next_run = next_run_for(schedule)
            schedule.last_run = ran_at
            data.last_updated = self._clock()
            self._write_data(data)

        logger.debug(
            f"Recorded run of schedule {schedule.name}",
            extra={
                "event": "storage.schedule.run_recorded",
                "schedule_id": schedule_id,
                "next_run": schedule.next_run,
            },
        )
        return schedule.model_copy(deep=True)

    def delete_schedule(self, schedule_id: str) -> None:
        """
        Remove a schedule.

        Raises:
            ScheduleNotFoundError: If no schedule has this ID
            PersistenceError: If reading or writing the file fails
        """
        with self._lock.write_locked():
            data = self._read_data()

            index = self._index_of(data, schedule_id)
            if index is None:
                raise ScheduleNotFoundError(f"schedule with ID {schedule_id} not found")

            del data.schedules[index]
            data.last_updated = self._clock()
            self._write_data(data)

        logger.info(
            f"Deleted schedule {schedule_id}",
            extra={"event": "storage.schedule.deleted", "schedule_id": schedule_id},
        )

    def schedule_exists(self, schedule_id: str) -> bool:
        with self._lock.read_locked():
            data = self._read_data()
        return self._index_of(data, schedule_id) is not None

    def get_schedule_by_id(self, schedule_id: str) -> Schedule:
        """
        Raises:
            ScheduleNotFoundError: If no schedule has this ID
        """
        with self._lock.read_locked():
            data = self._read_data()

        for schedule in data.schedules:
            if schedule.id == schedule_id:
                return schedule

        raise ScheduleNotFoundError(f"schedule with ID {schedule_id} not found")

    def get_schedule_by_name(self, name: str) -> Schedule:
        """
        Raises:
            ScheduleNotFoundError: If no schedule has this name
        """
        with self._lock.read_locked():
            data = self._read_data()

        for schedule in data.schedules:
            if schedule.name == name:
                return schedule

        raise ScheduleNotFoundError(f"schedule with name '{name}' not found")

    def backup(self) -> Path:
        """
        Copy the storage file to ``<file>.backup.YYYYMMDD_HHMMSS``.

        Returns:
            Path of the backup file

        Raises:
            PersistenceError: If the storage file is missing or cannot be copied
        """
        with self._lock.read_locked():
            if not self.file_path.exists():
                raise PersistenceError(f"storage file does not exist: {self.file_path}")

            backup_path = self.file_path.with_name(
                f"{self.file_path.name}.backup.{backup_suffix(self._clock())}"
            )
            try:
                content = self.file_path.read_bytes()
            except OSError as e:
                raise PersistenceError(f"Failed to read storage file: {e}") from e
            self._atomic_write(backup_path, content)

        logger.info(
            f"Backed up schedules to {backup_path}",
            extra={"event": "storage.backup.created", "backup_path": str(backup_path)},
        )
        return backup_path

    def restore(self, backup_path: Union[str, Path]) -> int:
        """
        Replace the live file with a backup after validating every record.

        Returns:
            Number of schedules restored

        Raises:
            PersistenceError: If the backup is missing or unreadable
            StorageCorruptedError: If the backup is not valid storage data
        """
        backup_path = expand_path(backup_path)

        with self._lock.write_locked():
            if not backup_path.exists():
                raise PersistenceError(f"backup file does not exist: {backup_path}")

            try:
                content = backup_path.read_bytes()
            except OSError as e:
                raise PersistenceError(f"Failed to read backup file: {e}") from e

            data = self._parse(content, source=backup_path)
            self._atomic_write(self.file_path, content)

        logger.info(
            f"Restored {len(data.schedules)} schedules from {backup_path}",
            extra={
                "event": "storage.restored",
                "backup_path": str(backup_path),
                "schedule_count": len(data.schedules),
            },
        )
        return len(data.schedules)

    def get_storage_info(self) -> Dict[str, Any]:
        """Path, size, modification time, and contents summary of the file."""
        with self._lock.read_locked():
            info: Dict[str, Any] = {
                "file_path": str(self.file_path),
                "file_exists": self.file_path.exists(),
            }

            if info["file_exists"]:
                try:
                    stat = self.file_path.stat()
                    info["file_size"] = stat.st_size
                    info["modified_time"] = datetime.fromtimestamp(stat.st_mtime)
                except OSError as e:
                    info["error"] = f"Failed to stat storage file: {e}"

                try:
                    data = self._read_data()
                except PersistenceError as e:
                    info["error"] = str(e)
                else:
                    info["schedule_count"] = len(data.schedules)
                    info["last_updated"] = data.last_updated
                    info["version"] = data.version

        return info

    @staticmethod
    def _validate(schedule: Schedule) -> None:
        try:
            schedule.validate()
        except ScheduleValidationError as e:
            raise ScheduleValidationError(f"invalid schedule: {e}") from e

    @staticmethod
    def _index_of(data: StorageData, schedule_id: str) -> Optional[int]:
        for index, schedule in enumerate(data.schedules):
            if schedule.id == schedule_id:
                return index
        return None

    def _read_data(self) -> StorageData:
        """Read and validate the storage file. Caller holds the lock."""
        if not self.file_path.exists():
            return StorageData(last_updated=self._clock())

        try:
            content = self.file_path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Failed to read storage file {self.file_path}: {e}") from e

        return self._parse(content, source=self.file_path)

    def _parse(self, content: bytes, source: Path) -> StorageData:
        try:
            document = json.loads(content)
        except ValueError as e:
            raise StorageCorruptedError(f"Failed to parse JSON in {source}: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get("schedules"), list):
            raise StorageCorruptedError(
                f"{source} is not a schedule store: expected an object with a 'schedules' list"
            )

        schedules: List[Schedule] = []
        seen_ids = set()
        seen_names = set()
        for record in document["schedules"]:
            record_id = record.get("id", "<missing id>") if isinstance(record, dict) else "<not an object>"
            try:
                if not isinstance(record, dict):
                    raise ScheduleValidationError("schedule record must be an object")
                schedule = schedule_from_dict(record)
                schedule.validate()
            except ScheduleValidationError as e:
                raise StorageCorruptedError(f"invalid schedule {record_id} in {source}: {e}") from e

            if schedule.id in seen_ids:
                raise StorageCorruptedError(f"duplicate schedule ID {schedule.id} in {source}")
            if schedule.name in seen_names:
                raise StorageCorruptedError(f"duplicate schedule name '{schedule.name}' in {source}")
            seen_ids.add(schedule.id)
            seen_names.add(schedule.name)
            schedules.append(schedule)

        try:
            return StorageData(
                schedules=schedules,
                last_updated=document.get("last_updated") or self._clock(),
                version=document.get("version") or SCHEMA_VERSION,
            )
        except ValueError as e:
            raise StorageCorruptedError(f"invalid storage header in {source}: {e}") from e

    def _write_data(self, data: StorageData) -> None:
        """Serialize and atomically replace the storage file. Caller holds the write lock."""
        content = json.dumps(data.to_document(), indent=2).encode("utf-8")
        self._atomic_write(self.file_path, content)

    def _atomic_write(self, target: Path, content: bytes) -> None:
        """Write ``content`` to a temp file beside ``target`` and rename it over ``target``.

        Raises:
            StorageWriteError: If any step fails; ``target`` is left untouched
        """
        fd, temp_name = None, None
        try:
            fd, temp_name = tempfile.mkstemp(
                dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as handle:
                fd = None
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_name, FILE_MODE)
            os.replace(temp_name, target)
            temp_name = None
        except OSError as e:
            logger.error(
                f"Failed to write {target}: {e}",
                extra={"event": "storage.write.failed", "path": str(target)},
            )
            raise StorageWriteError(f"Failed to replace storage file {target}: {e}") from e
        finally:
            if fd is not None:
                os.close(fd)
            if temp_name is not None and os.path.exists(temp_name):
                os.remove(temp_name)


def open_storage(file_path: Union[str, Path]) -> JSONScheduleStorage:
    """Create and initialize storage at ``file_path``.

    Raises:
        PersistenceError: If the file cannot be created or is invalid
    """
    storage = JSONScheduleStorage(file_path)
    storage.initialize()
    return storage

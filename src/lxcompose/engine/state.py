"""Durable container state store."""

import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from lxcompose.errors import NotFoundError, StorageError
from lxcompose.models.config import RetryConfig
from lxcompose.models.container import ContainerSpec
from lxcompose.models.state import ContainerRecord, ContainerStatus
from lxcompose.utils.retry import retry_with_backoff


logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many readers or one writer; waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def derive_timestamps(
    previous: Optional[ContainerRecord],
    status: ContainerStatus,
    now: datetime,
) -> Dict[str, Optional[datetime]]:
    """Compute start/stop timestamps for a transition into ``status``."""
    old_status = previous.status if previous else None
    started = previous.last_started_at if previous else None
    stopped = previous.last_stopped_at if previous else None

    if status == ContainerStatus.RUNNING and old_status in (ContainerStatus.STOPPED, ContainerStatus.FROZEN):
        started = now
    elif status == ContainerStatus.STOPPED and old_status == ContainerStatus.RUNNING:
        stopped = now

    return {"last_started_at": started, "last_stopped_at": stopped}


class StateStore:
    """Container records kept in memory and mirrored to one JSON file each."""

    def __init__(self, state_dir: Path, retry: Optional[RetryConfig] = None):
        """Initialize store and load existing records."""
        self.state_dir = Path(state_dir)
        self.retry = retry or RetryConfig()
        self._lock = ReadWriteLock()
        self._records: Dict[str, ContainerRecord] = {}
        self.load_all()

    def _path(self, name: str) -> Path:
        return self.state_dir / f"{name}.json"

    def load_all(self) -> None:
        """Reload every record from disk, skipping unreadable files."""
        with self._lock.write():
            try:
                self.state_dir.mkdir(parents=True, exist_ok=True)
                os.chmod(self.state_dir, 0o700)
            except OSError as e:
                raise StorageError(f"failed to create state directory {self.state_dir}: {e}") from e

            records = {}
            for path in sorted(self.state_dir.glob("*.json")):
                try:
                    record = ContainerRecord.model_validate_json(path.read_text())
                except (OSError, ValueError, ValidationError) as e:
                    logger.warning(f"Skipping unreadable state file {path}: {e}")
                    continue
                records[record.name] = record

            self._records = records
            logger.debug(f"Loaded {len(records)} container records from {self.state_dir}")

    def save(
        self,
        name: str,
        spec: ContainerSpec,
        status: ContainerStatus,
        cancel: Optional[threading.Event] = None,
    ) -> ContainerRecord:
        """Persist ``spec`` and ``status`` for ``name`` and return the new record."""
        def attempt() -> ContainerRecord:
            with self._lock.write():
                previous = self._records.get(name)
                now = datetime.now(timezone.utc)
                record = ContainerRecord(
                    name=name,
                    created_at=previous.created_at if previous else now,
                    status=status,
                    spec=spec.model_copy(deep=True),
                    **derive_timestamps(previous, status, now),
                )
                self._write(record)
                self._records[name] = record
                return record.model_copy(deep=True)

        record = retry_with_backoff(attempt, self.retry, cancel, description=f"save state for {name}")
        logger.debug(f"Saved state for {name}: {status.value}")
        return record

    def _write(self, record: ContainerRecord) -> None:
        """Write one record atomically with owner-only permissions."""
        path = self._path(record.name)
        tmp_path = path.with_name(f".{path.name}.tmp")
        data = json.dumps(record.model_dump(mode="json"), indent=2)
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"failed to write state file {path}: {e}", name=record.name) from e

    def get(self, name: str) -> ContainerRecord:
        """Return a copy of the record for ``name``."""
        with self._lock.read():
            record = self._records.get(name)
            if record is None:
                raise NotFoundError(f"container '{name}' not found", name=name)
            return record.model_copy(deep=True)

    def exists(self, name: str) -> bool:
        with self._lock.read():
            return name in self._records

    def list(self) -> List[ContainerRecord]:
        """All records sorted by name."""
        with self._lock.read():
            return [self._records[name].model_copy(deep=True) for name in sorted(self._records)]

    def remove(self, name: str) -> None:
        """Delete the record for ``name``."""
        with self._lock.write():
            if name not in self._records:
                raise NotFoundError(f"container '{name}' not found", name=name)
            try:
                self._path(name).unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"failed to remove state file for {name}: {e}", name=name) from e
            del self._records[name]
        logger.debug(f"Removed state for {name}")

"""Container lifecycle state machine."""

import logging
import shutil
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from lxcompose.engine.state import StateStore
from lxcompose.engine.stats import NetworkStats, parse_net_dev
from lxcompose.errors import (
    AlreadyExistsError,
    HostError,
    InvalidStateError,
    LxcomposeError,
    OperationCancelledError,
    RuntimeCommandError,
    StorageError,
)
from lxcompose.models.config import Settings
from lxcompose.models.container import ContainerSpec, validate_spec
from lxcompose.models.state import ContainerRecord, ContainerStatus
from lxcompose.translator import ConfigTranslator
from lxcompose.translator.base import LOG_FILE
from lxcompose.utils.lxc import CommandRunner, LxcRuntime


logger = logging.getLogger(__name__)

STATE_DIR = "state"

RuntimeCall = Callable[[str, Optional[threading.Event]], object]


class _NamedLock:
    """A per-container lock and the number of threads holding or awaiting it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class LifecycleController:
    """Drives containers through STOPPED, RUNNING and FROZEN.

    Every transition reads the current (reconciled) status, checks that the
    operation is legal from it, runs the runtime command and only then
    records the new status. A failed check or command leaves the store
    untouched.
    """

    def __init__(
        self,
        root_dir: Path,
        store: StateStore,
        runtime: LxcRuntime,
        translator: Optional[ConfigTranslator] = None,
    ):
        """Initialize controller."""
        self.root_dir = Path(root_dir)
        self.store = store
        self.runtime = runtime
        self.translator = translator or ConfigTranslator()
        self._locks: Dict[str, _NamedLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, runner: Optional[CommandRunner] = None) -> "LifecycleController":
        """Build a controller and its collaborators from settings."""
        root_dir = Path(settings.root_dir)
        store = StateStore(root_dir / STATE_DIR, settings.retry)
        runtime = LxcRuntime(runner, settings.runtime)
        return cls(root_dir, store, runtime)

    def container_dir(self, name: str) -> Path:
        """Directory holding a container's config and artifacts."""
        return self.root_dir / name

    @contextmanager
    def _container_lock(self, name: str):
        """Serialize operations on one container.

        The map entry lives only while some thread holds or waits for it.
        """
        with self._locks_guard:
            entry = self._locks.get(name)
            if entry is None:
                entry = self._locks[name] = _NamedLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[name]

    def create(self, spec: ContainerSpec, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Write a new container's artifacts and record it as STOPPED."""
        spec = validate_spec(spec)
        name = spec.name

        with self._container_lock(name):
            if self.store.exists(name):
                raise AlreadyExistsError(f"container '{name}' already exists", name=name)

            container_dir = self.container_dir(name)
            translation = self.translator.translate(spec, container_dir)
            try:
                translation.write(container_dir)
                (container_dir / LOG_FILE).touch(exist_ok=True)
            except OSError as e:
                raise StorageError(f"failed to write configuration for {name}: {e}", name=name) from e

            try:
                record = self.store.save(name, spec, ContainerStatus.STOPPED, cancel)
            except LxcomposeError:
                logger.error(f"Failed to record container {name}, removing its directory")
                shutil.rmtree(container_dir, ignore_errors=True)
                raise

        logger.info(f"Created container {name}")
        return record

    def get(self, name: str, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Return the record for ``name`` with its status reconciled against the runtime."""
        return self._reconcile(self.store.get(name), cancel)

    def list(self, cancel: Optional[threading.Event] = None) -> List[ContainerRecord]:
        """All containers sorted by name, reconciled."""
        return [self._reconcile(record, cancel) for record in self.store.list()]

    def _reconcile(self, record: ContainerRecord, cancel: Optional[threading.Event]) -> ContainerRecord:
        """Override the persisted status with the runtime's view when it reports one.

        The store is not rewritten.
        """
        try:
            status = self.runtime.info(record.name, cancel)
        except OperationCancelledError:
            raise
        except LxcomposeError as e:
            logger.debug(f"Runtime state query failed for {record.name}, keeping {record.status.value}: {e}")
            return record

        if status is not None and status != record.status:
            logger.debug(
                f"Runtime reports {record.name} as {status.value} (stored {record.status.value})"
            )
            record.status = status
        return record

    def _transition(
        self,
        name: str,
        operation: str,
        allowed: Iterable[ContainerStatus],
        target: ContainerStatus,
        call: RuntimeCall,
        cancel: Optional[threading.Event],
    ) -> ContainerRecord:
        with self._container_lock(name):
            record = self.get(name, cancel)
            if record.status not in allowed:
                raise InvalidStateError(name, record.status.value, operation)

            call(name, cancel)
            saved = self.store.save(name, record.spec, target, cancel)

        logger.info(f"Container {name}: {record.status.value} -> {target.value} ({operation})")
        return saved

    def start(self, name: str, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Start a stopped container."""
        return self._transition(
            name, "start", [ContainerStatus.STOPPED], ContainerStatus.RUNNING,
            self.runtime.start, cancel,
        )

    def stop(self, name: str, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Stop a running or frozen container."""
        return self._transition(
            name, "stop", [ContainerStatus.RUNNING, ContainerStatus.FROZEN], ContainerStatus.STOPPED,
            self.runtime.stop, cancel,
        )

    def pause(self, name: str, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Freeze a running container."""
        return self._transition(
            name, "pause", [ContainerStatus.RUNNING], ContainerStatus.FROZEN,
            self.runtime.freeze, cancel,
        )

    def resume(self, name: str, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Thaw a frozen container."""
        return self._transition(
            name, "resume", [ContainerStatus.FROZEN], ContainerStatus.RUNNING,
            self.runtime.unfreeze, cancel,
        )

    def restart(self, name: str, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Stop the container if it is up, then start it."""
        with self._container_lock(name):
            record = self.get(name, cancel)

            if record.status in (ContainerStatus.RUNNING, ContainerStatus.FROZEN):
                self._restart_step("stop", self.runtime.stop, name, cancel)
                self.store.save(name, record.spec, ContainerStatus.STOPPED, cancel)

            self._restart_step("start", self.runtime.start, name, cancel)
            saved = self.store.save(name, record.spec, ContainerStatus.RUNNING, cancel)

        logger.info(f"Restarted container {name}")
        return saved

    @staticmethod
    def _restart_step(step: str, call: RuntimeCall, name: str, cancel: Optional[threading.Event]) -> None:
        """Run one half of a restart, tagging failures with the step name."""
        operation = f"restart:{step}"
        try:
            call(name, cancel)
        except RuntimeCommandError as e:
            raise RuntimeCommandError(name, operation, e.returncode, e.output) from e
        except InvalidStateError as e:
            raise InvalidStateError(name, e.status, operation) from e
        except LxcomposeError as e:
            e.context["operation"] = operation
            raise

    def remove(self, name: str, cancel: Optional[threading.Event] = None) -> None:
        """Delete a stopped container's artifacts and record."""
        with self._container_lock(name):
            record = self.get(name, cancel)
            if record.status != ContainerStatus.STOPPED:
                raise InvalidStateError(name, record.status.value, "remove")

            container_dir = self.container_dir(name)
            try:
                if container_dir.exists():
                    shutil.rmtree(container_dir)
            except OSError as e:
                raise StorageError(f"failed to remove {container_dir}: {e}", name=name) from e
            self.store.remove(name)

        logger.info(f"Removed container {name}")

    def network_stats(self, name: str, cancel: Optional[threading.Event] = None) -> List[NetworkStats]:
        """Traffic counters for each interface of a running container, loopback excluded."""
        record = self.get(name, cancel)
        pid = None
        if record.status in (ContainerStatus.RUNNING, ContainerStatus.FROZEN):
            pid = self.runtime.init_pid(name, cancel)
        if pid is None:
            raise InvalidStateError(
                name, record.status.value, "stats", message=f"container '{name}' is not running"
            )

        path = Path(self.runtime.config.net_dev_path.format(pid=pid, name=name))
        try:
            text = path.read_text()
        except OSError as e:
            raise HostError(f"failed to read network stats for {name}: {e}", name=name, path=str(path)) from e
        return parse_net_dev(text)

    def update(self, spec: ContainerSpec, cancel: Optional[threading.Event] = None) -> ContainerRecord:
        """Apply a new spec to an existing container, keeping its status."""
        spec = validate_spec(spec)
        name = spec.name

        with self._container_lock(name):
            current = self.store.get(name)
            container_dir = self.container_dir(name)
            translation = self.translator.translate(spec, container_dir)
            try:
                translation.write(container_dir)
            except OSError as e:
                raise StorageError(f"failed to write configuration for {name}: {e}", name=name) from e
            record = self.store.save(name, spec, current.status, cancel)

        logger.info(f"Updated container {name}")
        return record

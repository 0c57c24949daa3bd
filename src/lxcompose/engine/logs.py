"""Container console log retrieval."""

import io
import logging
import os
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union

from lxcompose.engine.state import StateStore
from lxcompose.errors import NotFoundError
from lxcompose.models.config import RuntimeConfig
from lxcompose.translator.base import LOG_FILE
from lxcompose.utils.lxc import CommandRunner, SubprocessRunner


logger = logging.getLogger(__name__)

ENCODING = "utf-8"
_TIMESTAMP_PATTERN = re.compile(r"^\[([^\]]+)\] ?")


@dataclass
class LogOptions:
    """How much of the log to return and whether to keep following it."""
    follow: bool = False
    tail: int = 0
    since: Optional[datetime] = None
    timestamps: bool = True


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_line_timestamp(line: str) -> Optional[datetime]:
    """Return the bracketed ISO-8601 timestamp at the start of ``line``."""
    match = _TIMESTAMP_PATTERN.match(line)
    if not match:
        return None
    text = match.group(1).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def strip_timestamp(line: str) -> str:
    """Drop a parseable leading timestamp from ``line``."""
    if parse_line_timestamp(line) is None:
        return line
    return _TIMESTAMP_PATTERN.sub("", line, count=1)


def filter_lines(lines: List[str], since: Optional[datetime] = None, tail: int = 0) -> List[str]:
    """Apply the ``since`` cutoff, then keep the last ``tail`` lines.

    Lines without a parseable timestamp always pass the cutoff.
    """
    if since is not None:
        cutoff = _as_utc(since)
        kept = []
        for line in lines:
            stamp = parse_line_timestamp(line)
            if stamp is None or stamp >= cutoff:
                kept.append(line)
        lines = kept
    if tail > 0:
        lines = lines[-tail:]
    return lines


def _decode(data: bytes) -> str:
    return data.decode(ENCODING, errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode(ENCODING, errors="surrogateescape")


class LogFollower:
    """Live log stream: existing file content, then the follow process output.

    Owns one external process. ``close`` stops it.
    """

    def __init__(
        self,
        log_file: BinaryIO,
        process: subprocess.Popen,
        options: LogOptions,
        grace_period: float = 5.0,
        snapshot_size: Optional[int] = None,
    ):
        """Initialize follower.

        Only the first ``snapshot_size`` bytes of ``log_file`` are replayed;
        anything after that offset comes from the follow process.
        """
        self._file = log_file
        self._snapshot_size = snapshot_size
        self._process = process
        self._options = options
        self._grace_period = grace_period
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _format(self, line: str) -> bytes:
        if not self._options.timestamps:
            line = strip_timestamp(line)
        return _encode(line)

    def __iter__(self) -> Iterator[bytes]:
        size = -1 if self._snapshot_size is None else self._snapshot_size
        existing = _decode(self._file.read(size)).splitlines(keepends=True)
        for line in filter_lines(existing, self._options.since, self._options.tail):
            yield self._format(line)

        cutoff = _as_utc(self._options.since) if self._options.since else None
        for raw in iter(self._process.stdout.readline, b""):
            if self._closed:
                break
            line = _decode(raw)
            if cutoff is not None:
                stamp = parse_line_timestamp(line)
                if stamp is not None and stamp < cutoff:
                    continue
            yield self._format(line)

    def close(self) -> None:
        """Close the file and stop the follow process."""
        if self._closed:
            return
        self._closed = True
        self._file.close()

        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=self._grace_period)
            except subprocess.TimeoutExpired:
                logger.warning(f"Follow process {self._process.pid} did not exit, killing it")
                self._process.kill()
                self._process.wait()
        if self._process.stdout is not None:
            self._process.stdout.close()

    def __enter__(self) -> "LogFollower":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class LogRetrieval:
    """Reads container console logs."""

    def __init__(
        self,
        root_dir: Path,
        store: StateStore,
        runner: Optional[CommandRunner] = None,
        config: Optional[RuntimeConfig] = None,
    ):
        """Initialize log retrieval."""
        self.root_dir = Path(root_dir)
        self.store = store
        self.runner = runner or SubprocessRunner()
        self.config = config or RuntimeConfig()

    def log_path(self, name: str) -> Path:
        return self.root_dir / name / LOG_FILE

    def get_logs(self, name: str, options: Optional[LogOptions] = None) -> Union[BinaryIO, LogFollower]:
        """Return the container's log as a byte stream.

        Without ``follow`` the result is an in-memory snapshot; with it the
        result is a ``LogFollower`` the caller must close.
        """
        options = options or LogOptions()
        if not self.store.exists(name):
            raise NotFoundError(f"container '{name}' not found", name=name)

        path = self.log_path(name)
        if not path.exists():
            raise NotFoundError(f"no log file for container '{name}'", name=name, path=str(path))

        if options.follow:
            return self._follow(name, path, options)

        lines = _decode(path.read_bytes()).splitlines(keepends=True)
        lines = filter_lines(lines, options.since, options.tail)
        if not options.timestamps:
            lines = [strip_timestamp(line) for line in lines]
        return io.BytesIO(_encode("".join(lines)))

    def _follow(self, name: str, path: Path, options: LogOptions) -> LogFollower:
        log_file = open(path, "rb")
        try:
            size = os.fstat(log_file.fileno()).st_size
            args = [
                arg.format(path=str(path), name=name, offset=size + 1)
                for arg in self.config.follow_command
            ]
            process = self.runner.spawn(args)
        except Exception:
            log_file.close()
            raise
        logger.debug(f"Following logs for {name} with pid {process.pid}")
        return LogFollower(
            log_file, process, options, self.config.follow_grace_period, snapshot_size=size
        )

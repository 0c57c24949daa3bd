"""LXC command execution."""

import logging
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from lxcompose.errors import (
    HostError,
    InvalidStateError,
    NotFoundError,
    OperationCancelledError,
    RuntimeCommandError,
)
from lxcompose.models.config import RuntimeConfig
from lxcompose.models.state import ContainerStatus


logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 2
EXIT_INVALID_STATE = 3


@dataclass
class CommandResult:
    """Result from running a command."""
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        """Combined output, stderr first."""
        return "\n".join(part for part in (self.stderr.strip(), self.stdout.strip()) if part)


class CommandRunner(ABC):
    """Executes external commands on the host."""

    @abstractmethod
    def run(self, args: List[str], cancel: Optional[threading.Event] = None) -> CommandResult:
        """Run a command to completion and capture its output."""
        pass

    @abstractmethod
    def spawn(self, args: List[str]) -> subprocess.Popen:
        """Start a long-running command whose stdout is read incrementally."""
        pass


class SubprocessRunner(CommandRunner):
    """Command runner backed by ``subprocess``."""

    def __init__(self, poll_interval: float = 0.1):
        """Initialize runner."""
        self.poll_interval = poll_interval

    def run(self, args: List[str], cancel: Optional[threading.Event] = None) -> CommandResult:
        """Run a command, killing it if ``cancel`` is set while it runs."""
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError(f"command cancelled before start: {args[0]}")

        logger.debug(f"Running command: {' '.join(args)}")
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise HostError(f"failed to execute {args[0]}: {e}", command=args[0]) from e

        while True:
            try:
                stdout, stderr = process.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    process.kill()
                    process.communicate()
                    logger.warning(f"Killed cancelled command: {' '.join(args)}")
                    raise OperationCancelledError(f"command cancelled: {args[0]}")

        return CommandResult(
            returncode=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
        )

    def spawn(self, args: List[str]) -> subprocess.Popen:
        """Start a command with its stdout piped."""
        logger.debug(f"Spawning command: {' '.join(args)}")
        try:
            return subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise HostError(f"failed to execute {args[0]}: {e}", command=args[0]) from e


def parse_info_state(output: str) -> Optional[ContainerStatus]:
    """Extract the status from ``lxc-info`` output.

    Returns None when no ``State:`` line is present or its value is not a
    known status.
    """
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip().lower() == "state":
            try:
                return ContainerStatus(value.strip().upper())
            except ValueError:
                logger.debug(f"Unrecognized container state: {value.strip()}")
                return None
    return None


def parse_info_pid(output: str) -> Optional[int]:
    """Extract the init process id from ``lxc-info`` output, if any."""
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip().lower() == "pid":
            try:
                return int(value.strip())
            except ValueError:
                return None
    return None


class LxcRuntime:
    """Thin adapter over the lxc-* command line tools."""

    def __init__(self, runner: Optional[CommandRunner] = None, config: Optional[RuntimeConfig] = None):
        """Initialize runtime adapter."""
        self.runner = runner or SubprocessRunner()
        self.config = config or RuntimeConfig()

    def start(self, name: str, cancel: Optional[threading.Event] = None) -> CommandResult:
        """Start a container."""
        return self._execute(self.config.start_command, name, "start", cancel)

    def stop(self, name: str, cancel: Optional[threading.Event] = None) -> CommandResult:
        """Stop a container."""
        return self._execute(self.config.stop_command, name, "stop", cancel)

    def freeze(self, name: str, cancel: Optional[threading.Event] = None) -> CommandResult:
        """Freeze a running container."""
        return self._execute(self.config.freeze_command, name, "freeze", cancel)

    def unfreeze(self, name: str, cancel: Optional[threading.Event] = None) -> CommandResult:
        """Thaw a frozen container."""
        return self._execute(self.config.unfreeze_command, name, "unfreeze", cancel)

    def info(self, name: str, cancel: Optional[threading.Event] = None) -> Optional[ContainerStatus]:
        """Ask the runtime for the container's current status."""
        result = self._execute(self.config.info_command, name, "info", cancel)
        return parse_info_state(result.stdout)

    def init_pid(self, name: str, cancel: Optional[threading.Event] = None) -> Optional[int]:
        """Process id of the container's init, or None when it has none."""
        result = self._execute(self.config.info_command, name, "info", cancel)
        return parse_info_pid(result.stdout)

    def _execute(
        self,
        command: str,
        name: str,
        operation: str,
        cancel: Optional[threading.Event],
    ) -> CommandResult:
        """Run ``command -n name`` and map its exit code to an error."""
        result = self.runner.run([command, "-n", name], cancel=cancel)

        if result.returncode == 0:
            return result

        if result.returncode == EXIT_NOT_FOUND:
            raise NotFoundError(
                f"container '{name}' does not exist",
                name=name,
                operation=operation,
            )
        if result.returncode == EXIT_INVALID_STATE:
            raise InvalidStateError(
                name,
                "unknown",
                operation,
                message=f"container '{name}' is in an invalid state to {operation}",
            )

        logger.error(f"{command} failed for {name} (exit code {result.returncode}): {result.output}")
        raise RuntimeCommandError(name, operation, result.returncode, result.output)

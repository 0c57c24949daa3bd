"""Shared fixtures."""

import io
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from lxcompose.engine.lifecycle import LifecycleController
from lxcompose.models.config import RetryConfig, Settings
from lxcompose.models.container import ContainerSpec
from lxcompose.utils.lxc import CommandResult, CommandRunner


class FakeLxcRunner(CommandRunner):
    """Simulates the lxc-* tools against an in-memory table of containers."""

    TRANSITIONS = {
        "lxc-start": "RUNNING",
        "lxc-stop": "STOPPED",
        "lxc-freeze": "FROZEN",
        "lxc-unfreeze": "RUNNING",
    }

    INIT_PID = 4242

    def __init__(self):
        self.states: Dict[str, str] = {}
        self.calls: List[List[str]] = []
        self.failures: Dict[Tuple[str, str], CommandResult] = {}
        self.follow_output = b""
        self.spawned: List[MagicMock] = []

    def fail(self, command: str, name: str, returncode: int = 1, stderr: str = "boom"):
        self.failures[(command, name)] = CommandResult(returncode=returncode, stderr=stderr)

    def commands_for(self, name: str) -> List[str]:
        return [args[0] for args in self.calls if args[-1] == name]

    def run(self, args, cancel=None) -> CommandResult:
        self.calls.append(list(args))
        command, name = args[0], args[-1]

        if (command, name) in self.failures:
            return self.failures[(command, name)]

        if command == "lxc-info":
            state: Optional[str] = self.states.get(name)
            if state is None:
                return CommandResult(returncode=2, stderr=f"{name} doesn't exist")
            stdout = f"Name:           {name}\nState:          {state}\n"
            if state in ("RUNNING", "FROZEN"):
                stdout += f"PID:            {self.INIT_PID}\n"
            return CommandResult(returncode=0, stdout=stdout)

        self.states[name] = self.TRANSITIONS[command]
        return CommandResult(returncode=0)

    def spawn(self, args):
        self.calls.append(list(args))
        process = MagicMock()
        process.pid = 4242
        process.stdout = io.BytesIO(self.follow_output)
        process.poll.return_value = None
        self.spawned.append(process)
        return process


@pytest.fixture
def fake_runner():
    """Fake LXC command runner."""
    return FakeLxcRunner()


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory with instant retries."""
    return Settings(
        root_dir=str(tmp_path / "lxc"),
        retry=RetryConfig(initial_interval=0, max_interval=0),
    )


@pytest.fixture
def controller(settings, fake_runner):
    """Lifecycle controller backed by the fake runner."""
    return LifecycleController.from_settings(settings, fake_runner)


@pytest.fixture
def make_spec():
    """Factory for container specs."""
    def _make(name: str = "web", **fields) -> ContainerSpec:
        data = {"name": name, "image": "alpine:3.19"}
        data.update(fields)
        return ContainerSpec.parse(data)
    return _make

"""Base translator section interface and translation result types."""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from lxcompose.models.container import ContainerSpec


logger = logging.getLogger(__name__)

CONFIG_FILE = "config"
NETWORK_FILE = "network.conf"
FIREWALL_FILE = "firewall.rules"
TRAFFIC_FILE = "traffic.rules"
INIT_SCRIPT = "init.sh"
LOG_FILE = "console.log"

# Files a translation may produce besides the config itself.
GENERATED_FILES = (NETWORK_FILE, FIREWALL_FILE, TRAFFIC_FILE, INIT_SCRIPT)


@dataclass
class GeneratedFile:
    """Auxiliary file produced alongside the config."""
    content: str
    mode: int = 0o644


@dataclass
class Translation:
    """Ordered config directives plus auxiliary files keyed by path."""
    lines: List[str] = field(default_factory=list)
    files: Dict[Path, GeneratedFile] = field(default_factory=dict)

    def add(self, key: str, value) -> None:
        """Append a ``key = value`` directive."""
        self.lines.append(f"{key} = {value}")

    def render(self) -> str:
        """Config file content."""
        return "".join(f"{line}\n" for line in self.lines)

    def write(self, container_dir: Path) -> Path:
        """Write config and generated files, removing stale artifacts."""
        container_dir = Path(container_dir)
        container_dir.mkdir(parents=True, exist_ok=True)

        config_path = container_dir / CONFIG_FILE
        _write_file(config_path, self.render(), 0o644)

        for path, generated in self.files.items():
            _write_file(Path(path), generated.content, generated.mode)

        current = {Path(path) for path in self.files}
        for name in GENERATED_FILES:
            stale = container_dir / name
            if stale not in current and stale.exists():
                logger.debug(f"Removing stale artifact {stale}")
                stale.unlink()

        return config_path


def _write_file(path: Path, content: str, mode: int) -> None:
    """Replace ``path`` atomically with ``content``."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(content)
    os.chmod(tmp_path, mode)
    os.replace(tmp_path, path)


class TranslatorSection(ABC):
    """One group of related config directives."""

    name: str = ""

    @abstractmethod
    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        """Append this section's directives and files to ``result``."""
        pass

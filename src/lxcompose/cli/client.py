"""Local service bundle used by CLI commands."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from lxcompose.engine.config import load_settings
from lxcompose.engine.lifecycle import LifecycleController
from lxcompose.engine.logs import LogRetrieval
from lxcompose.engine.templates import TemplateService
from lxcompose.models.config import Settings
from lxcompose.utils.lxc import CommandRunner, SubprocessRunner
from lxcompose.utils.logging import setup_logging


logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Controller, log retrieval and templates sharing one root directory."""
    controller: LifecycleController
    logs: LogRetrieval
    templates: TemplateService

    @classmethod
    def from_settings(cls, settings: Settings, runner: Optional[CommandRunner] = None) -> "Services":
        """Wire up services for ``settings``."""
        runner = runner or SubprocessRunner()
        controller = LifecycleController.from_settings(settings, runner)
        logs = LogRetrieval(controller.root_dir, controller.store, runner, settings.runtime)
        templates = TemplateService(controller.root_dir, controller)
        return cls(controller=controller, logs=logs, templates=templates)


def connect(config_path: Optional[Path] = None) -> Services:
    """Load settings, configure logging and build services."""
    settings = load_settings(config_path)
    setup_logging(settings.log_level)
    logger.debug(f"Using root directory {settings.root_dir}")
    return Services.from_settings(settings)

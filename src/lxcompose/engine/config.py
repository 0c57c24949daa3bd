"""Settings and container spec file loading."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from lxcompose.errors import LxcomposeError, SpecValidationError
from lxcompose.models.config import Settings
from lxcompose.models.container import ContainerSpec


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LXCOMPOSE_CONFIG"


def _read_yaml(file_path: Path) -> Dict[str, Any]:
    """Read and parse a YAML mapping."""
    yaml = YAML(typ="safe")
    try:
        data = yaml.load(file_path.read_text())
    except YAMLError as e:
        raise LxcomposeError(f"invalid YAML in {file_path}: {e}", path=str(file_path)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise LxcomposeError(f"expected a mapping in {file_path}", path=str(file_path))
    return data


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from ``config_path``, the environment, or defaults."""
    if config_path is None and os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])

    if config_path is None:
        logger.debug("No configuration file given, using defaults")
        return Settings()

    config_path = Path(config_path)
    if not config_path.exists():
        raise LxcomposeError(f"config file not found: {config_path}", path=str(config_path))

    try:
        settings = Settings(**_read_yaml(config_path))
    except ValidationError as e:
        logger.error(f"Invalid config {config_path}: {e}")
        raise LxcomposeError(f"invalid config {config_path}: {e}", path=str(config_path)) from e

    logger.debug(f"Loaded settings from {config_path}")
    return settings


def load_spec_file(spec_path: Path, name: Optional[str] = None) -> ContainerSpec:
    """Read one container spec from YAML, optionally overriding its name."""
    spec_path = Path(spec_path)
    if not spec_path.exists():
        raise LxcomposeError(f"spec file not found: {spec_path}", path=str(spec_path))

    try:
        data = _read_yaml(spec_path)
    except LxcomposeError as e:
        raise SpecValidationError(str(e), path=str(spec_path)) from e

    if name:
        data["name"] = name
    return ContainerSpec.parse(data)

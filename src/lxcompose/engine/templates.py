"""Reusable container templates."""

import logging
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from lxcompose.engine.lifecycle import LifecycleController
from lxcompose.errors import AlreadyExistsError, NotFoundError, SpecValidationError, StorageError
from lxcompose.models.container import ContainerSpec
from lxcompose.models.state import ContainerRecord, TemplateRecord
from lxcompose.translator.base import LOG_FILE
from lxcompose.validation import validate_name


logger = logging.getLogger(__name__)

TEMPLATES_DIR = "templates"
METADATA_FILE = "template.json"


def merge_overrides(base: ContainerSpec, overrides: Union[ContainerSpec, Dict[str, Any], None], name: str) -> ContainerSpec:
    """Overlay top-level override fields onto ``base``.

    A field replaces the template value only when it is present and
    non-empty. ``name`` always becomes ``name``.
    """
    data = base.model_dump()
    if isinstance(overrides, ContainerSpec):
        override_data = overrides.model_dump(exclude_unset=True)
    else:
        override_data = dict(overrides or {})

    for key, value in override_data.items():
        if key == "name" or value is None:
            continue
        if isinstance(value, (dict, list, str)) and not value:
            continue
        data[key] = value

    data["name"] = name
    return ContainerSpec.parse(data)


class TemplateService:
    """Captures containers as templates and instantiates new containers from them."""

    def __init__(self, root_dir: Path, controller: LifecycleController):
        """Initialize template service."""
        self.templates_dir = Path(root_dir) / TEMPLATES_DIR
        self.controller = controller
        self._lock = threading.Lock()

    def _template_dir(self, name: str) -> Path:
        return self.templates_dir / name

    def create_template(self, container: str, template: str, description: str = "") -> TemplateRecord:
        """Snapshot a container's artifacts and spec under ``template``."""
        try:
            validate_name(template, kind="template")
        except ValueError as e:
            raise SpecValidationError(str(e), name=template) from e

        record = self.controller.store.get(container)
        source_dir = self.controller.container_dir(container)
        target_dir = self._template_dir(template)

        with self._lock:
            if target_dir.exists():
                raise AlreadyExistsError(f"template '{template}' already exists", name=template)

            metadata = TemplateRecord(
                name=template,
                description=description,
                created_at=datetime.now(timezone.utc),
                source_container=container,
                base_spec=record.spec,
            )
            try:
                self.templates_dir.mkdir(parents=True, exist_ok=True)
                if source_dir.exists():
                    shutil.copytree(source_dir, target_dir, ignore=shutil.ignore_patterns(LOG_FILE))
                else:
                    target_dir.mkdir()
                (target_dir / METADATA_FILE).write_text(metadata.model_dump_json(indent=2))
            except OSError as e:
                shutil.rmtree(target_dir, ignore_errors=True)
                raise StorageError(f"failed to create template {template}: {e}", name=template) from e

        logger.info(f"Created template {template} from container {container}")
        return metadata

    def get_template(self, name: str) -> TemplateRecord:
        """Load a template's metadata."""
        path = self._template_dir(name) / METADATA_FILE
        if not path.exists():
            raise NotFoundError(f"template '{name}' not found", name=name)
        try:
            return TemplateRecord.model_validate_json(path.read_text())
        except (OSError, ValueError, ValidationError) as e:
            raise StorageError(f"failed to read template {name}: {e}", name=name) from e

    def list_templates(self) -> List[TemplateRecord]:
        """All readable templates sorted by name."""
        if not self.templates_dir.exists():
            return []

        templates = []
        for path in sorted(self.templates_dir.iterdir()):
            if not (path / METADATA_FILE).exists():
                continue
            try:
                templates.append(self.get_template(path.name))
            except StorageError as e:
                logger.warning(f"Skipping unreadable template {path.name}: {e}")
        return templates

    def delete_template(self, name: str) -> None:
        """Remove a template. Containers created from it are unaffected."""
        with self._lock:
            template_dir = self._template_dir(name)
            if not (template_dir / METADATA_FILE).exists():
                raise NotFoundError(f"template '{name}' not found", name=name)
            try:
                shutil.rmtree(template_dir)
            except OSError as e:
                raise StorageError(f"failed to delete template {name}: {e}", name=name) from e
        logger.info(f"Deleted template {name}")

    def create_from_template(
        self,
        template: str,
        container: str,
        overrides: Union[ContainerSpec, Dict[str, Any], None] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ContainerRecord:
        """Create a new container from a template's spec and optional overrides."""
        metadata = self.get_template(template)
        spec = merge_overrides(metadata.base_spec, overrides, container)
        logger.debug(f"Creating container {container} from template {template}")
        return self.controller.create(spec, cancel)

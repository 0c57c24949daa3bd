"""Ordered translator section registry."""

import logging
from pathlib import Path
from typing import List, Optional, Type

from lxcompose.models.container import ContainerSpec, validate_spec
from lxcompose.translator.base import Translation, TranslatorSection
from lxcompose.translator.network import NetworkSection
from lxcompose.translator.process import EntrypointSection, EnvironmentSection, IdentitySection
from lxcompose.translator.resources import ResourcesSection
from lxcompose.translator.security import SecuritySection
from lxcompose.translator.storage import StorageSection


logger = logging.getLogger(__name__)

DEFAULT_SECTIONS: List[Type[TranslatorSection]] = [
    IdentitySection,
    SecuritySection,
    ResourcesSection,
    NetworkSection,
    StorageSection,
    EnvironmentSection,
    EntrypointSection,
]


class ConfigTranslator:
    """Turns a container spec into LXC config lines and auxiliary files."""

    def __init__(self, sections: Optional[List[Type[TranslatorSection]]] = None):
        """Initialize translator with its sections in emission order."""
        self._sections: List[TranslatorSection] = [
            section_class() for section_class in (sections or DEFAULT_SECTIONS)
        ]

    def translate(self, spec: ContainerSpec, container_dir: Path) -> Translation:
        """Validate ``spec`` and build its translation.

        The result only depends on ``spec`` and ``container_dir``; nothing is
        written until ``Translation.write`` is called.
        """
        spec = validate_spec(spec)
        container_dir = Path(container_dir)
        result = Translation()

        for section in self._sections:
            section.apply(spec, container_dir, result)
            logger.debug(f"Applied {section.name} section for {spec.name}")

        return result

    def list_sections(self) -> List[str]:
        """Section names in emission order."""
        return [section.name for section in self._sections]

"""Translation of container specs into LXC configuration."""

from lxcompose.translator.base import GeneratedFile, Translation, TranslatorSection
from lxcompose.translator.registry import ConfigTranslator

__all__ = [
    "ConfigTranslator",
    "GeneratedFile",
    "Translation",
    "TranslatorSection",
]

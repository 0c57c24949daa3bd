"""Container lifecycle engine."""

from lxcompose.engine.lifecycle import LifecycleController
from lxcompose.engine.logs import LogFollower, LogOptions, LogRetrieval
from lxcompose.engine.state import StateStore
from lxcompose.engine.templates import TemplateService

__all__ = [
    "LifecycleController",
    "LogFollower",
    "LogOptions",
    "LogRetrieval",
    "StateStore",
    "TemplateService",
]

"""Pydantic models for configuration and validation."""

from lxcompose.models.config import Settings, RetryConfig, RuntimeConfig
from lxcompose.models.container import (
    ContainerSpec,
    ResourcesSpec,
    NetworkSpec,
    InterfaceSpec,
    BandwidthLimit,
    PortForward,
    StorageSpec,
    Mount,
    SecuritySpec,
    DeviceSpec,
    validate_spec,
)
from lxcompose.models.state import ContainerStatus, ContainerRecord, TemplateRecord

__all__ = [
    "Settings",
    "RetryConfig",
    "RuntimeConfig",
    "ContainerSpec",
    "ResourcesSpec",
    "NetworkSpec",
    "InterfaceSpec",
    "BandwidthLimit",
    "PortForward",
    "StorageSpec",
    "Mount",
    "SecuritySpec",
    "DeviceSpec",
    "validate_spec",
    "ContainerStatus",
    "ContainerRecord",
    "TemplateRecord",
]

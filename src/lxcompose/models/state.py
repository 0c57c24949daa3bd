"""Persisted container and template records."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from lxcompose.models.container import ContainerSpec


class ContainerStatus(str, Enum):
    """Lifecycle status of a container."""
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    FROZEN = "FROZEN"


class ContainerRecord(BaseModel):
    """Stored state for one container."""
    name: str
    created_at: datetime
    last_started_at: Optional[datetime] = None
    last_stopped_at: Optional[datetime] = None
    status: ContainerStatus = ContainerStatus.STOPPED
    spec: ContainerSpec


class TemplateRecord(BaseModel):
    """Metadata stored alongside a captured template."""
    name: str
    description: str = Field(default="")
    created_at: datetime
    source_container: str
    base_spec: ContainerSpec

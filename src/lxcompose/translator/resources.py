"""CPU and memory limit directives."""

from pathlib import Path

from lxcompose.models.container import ContainerSpec
from lxcompose.translator.base import Translation, TranslatorSection


RESOURCE_KEYS = (
    ("cpu_shares", "lxc.cpu.shares"),
    ("cpu_quota", "lxc.cpu.cfs_quota_us"),
    ("cpu_period", "lxc.cpu.cfs_period_us"),
    ("core_count", "lxc.cpu.nr_cpus"),
    ("memory_limit", "lxc.cgroup.memory.limit_in_bytes"),
    ("memory_swap", "lxc.cgroup.memory.memsw.limit_in_bytes"),
)


class ResourcesSection(TranslatorSection):
    """Emit one directive per configured limit."""

    name = "resources"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        for field_name, key in RESOURCE_KEYS:
            value = getattr(spec.resources, field_name)
            if value is not None:
                result.add(key, value)

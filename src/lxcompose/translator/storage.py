"""Root filesystem and mount directives."""

from pathlib import Path

from lxcompose.models.container import ContainerSpec
from lxcompose.translator.base import Translation, TranslatorSection


class StorageSection(TranslatorSection):
    """Translate the storage block."""

    name = "storage"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        storage = spec.storage
        if storage is None:
            return

        if storage.root_size:
            result.add("lxc.rootfs.size", storage.root_size)
        if storage.backend:
            result.add("lxc.rootfs.backend", storage.backend)
        if storage.pool:
            result.add("lxc.rootfs.pool", storage.pool)
        if storage.auto_mount:
            result.add("lxc.rootfs.mount.auto", "1")

        for index, mount in enumerate(storage.mounts):
            options = ",".join(mount.options) if mount.options else "defaults"
            result.add(
                f"lxc.mount.entry.{index}",
                f"{mount.source} {mount.target} {mount.kind} {options} 0 0",
            )

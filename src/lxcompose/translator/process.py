"""Identity, environment and init command directives."""

import shlex
from pathlib import Path

from lxcompose.models.container import ContainerSpec
from lxcompose.translator.base import INIT_SCRIPT, GeneratedFile, Translation, TranslatorSection
from lxcompose.utils.templates import render_template


INIT_SCRIPT_TEMPLATE = """\
#!/bin/sh
# init for {{ name }}
exec {{ command }}
"""


class IdentitySection(TranslatorSection):
    """Container hostname."""

    name = "identity"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        result.add("lxc.uts.name", spec.name)


class EnvironmentSection(TranslatorSection):
    """One ``lxc.environment`` directive per variable, sorted by key."""

    name = "environment"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        for key in sorted(spec.environment):
            result.add("lxc.environment", f"{key}={spec.environment[key]}")


class EntrypointSection(TranslatorSection):
    """Generate init.sh from entrypoint and command and point lxc.init.cmd at it."""

    name = "entrypoint"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        argv = list(spec.entrypoint) + list(spec.command)
        if not argv:
            return

        script_path = container_dir / INIT_SCRIPT
        content = render_template(
            INIT_SCRIPT_TEMPLATE,
            name=spec.name,
            command=shlex.join(argv),
        )
        result.files[script_path] = GeneratedFile(content=content, mode=0o755)
        result.add("lxc.init.cmd", script_path)

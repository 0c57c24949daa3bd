"""Security directives: isolation profile, LSM confinement, capabilities."""

from pathlib import Path

from lxcompose.models.container import ContainerSpec
from lxcompose.translator.base import Translation, TranslatorSection


DEFAULT_APPARMOR_PROFILE = "lxc-container-default"
ISOLATION_INCLUDE = "/usr/share/lxc/config/{isolation}.conf"


class SecuritySection(TranslatorSection):
    """Translate the security block."""

    name = "security"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        security = spec.security
        if security is None:
            result.add("lxc.apparmor.profile", DEFAULT_APPARMOR_PROFILE)
            return

        if security.privileged:
            result.add("lxc.apparmor.profile", "unconfined")
            # Empty value keeps every capability
            result.add("lxc.cap.drop", "")
            return

        result.add("lxc.include", ISOLATION_INCLUDE.format(isolation=security.isolation))
        if security.apparmor_profile:
            result.add("lxc.apparmor.profile", security.apparmor_profile)
        if security.selinux_context:
            result.add("lxc.selinux.context", security.selinux_context)
        if security.capabilities:
            result.add("lxc.cap.drop", "all")
            result.add("lxc.cap.keep", " ".join(security.canonical_capabilities()))
        if security.seccomp_profile:
            result.add("lxc.seccomp.profile", security.seccomp_profile)

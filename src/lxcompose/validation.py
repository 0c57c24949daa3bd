"""Field-level validation helpers shared by the specification models.

Each helper raises ``ValueError`` so it can be called from pydantic
validators and surface as a regular validation error.
"""

import ipaddress
import posixpath
import re
from typing import Iterable, List, Optional, Tuple, Union


LINUX_CAPABILITIES = frozenset([
    "chown", "dac_override", "dac_read_search", "fowner", "fsetid", "kill",
    "setgid", "setuid", "setpcap", "linux_immutable", "net_bind_service",
    "net_broadcast", "net_admin", "net_raw", "ipc_lock", "ipc_owner",
    "sys_module", "sys_rawio", "sys_chroot", "sys_ptrace", "sys_pacct",
    "sys_admin", "sys_boot", "sys_nice", "sys_resource", "sys_time",
    "sys_tty_config", "mknod", "lease", "audit_write", "audit_control",
    "setfcap", "mac_override", "mac_admin", "syslog", "wake_alarm",
    "block_suspend", "audit_read", "perfmon", "bpf", "checkpoint_restore",
])

DEVICE_OPTIONS = frozenset([
    "ro", "rw", "required", "optional", "recursive", "bind", "create",
    "persistent", "dynamic",
])

MTU_MIN = 68
MTU_MAX = 65535

NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
RESERVED_NAMES = frozenset(["state", "templates"])

_MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$")
_IFNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?$")
_SIZE_PATTERN = re.compile(r"^(\d+)([KMGTP]B?|B)?$", re.IGNORECASE)
_RATE_PATTERN = re.compile(r"^\d+(\.\d+)?(bit|kbit|mbit|gbit|tbit|bps|kbps|mbps|gbps|tbps)$", re.IGNORECASE)


def validate_name(name: str, kind: str = "container") -> str:
    """Validate a container or template name used as a directory name."""
    if not name:
        raise ValueError(f"{kind} name is required")
    if len(name) > 64:
        raise ValueError(f"{kind} name too long (max 64 characters): {name}")
    if not NAME_PATTERN.match(name):
        raise ValueError(
            f"invalid {kind} name (letters, digits, '_', '.', '-' only): {name}"
        )
    if name in RESERVED_NAMES:
        raise ValueError(f"{kind} name '{name}' is reserved")
    return name


def resolve_capability(name: str) -> str:
    """Return the canonical lowercase capability name without the CAP_ prefix."""
    canonical = name.strip().lower()
    if canonical.startswith("cap_"):
        canonical = canonical[4:]
    if canonical not in LINUX_CAPABILITIES:
        raise ValueError(f"invalid capability: {name}")
    return canonical


def split_address(value: str) -> Tuple[Union[ipaddress.IPv4Address, ipaddress.IPv6Address], Optional[int]]:
    """Parse ``address[/prefix]`` and return the address and prefix length."""
    address, _, prefix = value.partition("/")
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        raise ValueError(f"invalid IP address format: {value}") from None

    if not prefix:
        return ip, None

    if not prefix.isdigit():
        raise ValueError(f"invalid network prefix: {prefix}")
    length = int(prefix)
    if length < 1 or length > ip.max_prefixlen:
        raise ValueError(
            f"invalid IPv{ip.version} network prefix length: /{length} "
            f"(must be between 1 and {ip.max_prefixlen})"
        )
    return ip, length


def validate_ip(value: str) -> str:
    """Validate an IPv4 or IPv6 address with optional CIDR prefix."""
    split_address(value)
    return value


def validate_dns_servers(servers: Iterable[str]) -> List[str]:
    """Validate a list of DNS server addresses."""
    result = []
    for server in servers:
        if not server:
            raise ValueError("DNS server address cannot be empty")
        try:
            ipaddress.ip_address(server)
        except ValueError:
            raise ValueError(f"invalid DNS server address: {server}") from None
        result.append(server)
    return result


def validate_mac(value: str) -> str:
    """Validate a MAC address with ':' or '-' separators."""
    if not _MAC_PATTERN.match(value):
        raise ValueError(f"invalid MAC address format: {value}")
    return value


def validate_mtu(value: int) -> int:
    """Validate an interface MTU."""
    if value < MTU_MIN or value > MTU_MAX:
        raise ValueError(f"MTU must be between {MTU_MIN} and {MTU_MAX}")
    return value


def validate_interface_name(value: str) -> str:
    """Validate a Linux network interface name."""
    if len(value) > 15:
        raise ValueError(f"interface name too long (max 15 characters): {value}")
    if not _IFNAME_PATTERN.match(value):
        raise ValueError(
            f"invalid interface name (letters, numbers, hyphens and underscores only): {value}"
        )
    return value


def validate_hostname(value: str) -> str:
    """Validate an RFC 1123 host name label."""
    if len(value) > 63:
        raise ValueError("hostname too long (max 63 characters)")
    if not _HOSTNAME_PATTERN.match(value):
        raise ValueError(
            "hostname must start and end with alphanumeric characters and can contain hyphens"
        )
    return value


def parse_size(value: str) -> int:
    """Convert a size string such as ``10G`` or ``512MB`` to bytes."""
    match = _SIZE_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"invalid size format: {value}")

    amount = int(match.group(1))
    unit = (match.group(2) or "").upper().rstrip("B")
    exponent = "KMGTP".find(unit) + 1 if unit else 0
    size = amount * (1024 ** exponent)
    if size <= 0:
        raise ValueError("size must be positive")
    return size


def validate_size(value: str) -> str:
    """Validate a size string, keeping its original spelling."""
    parse_size(value)
    return value


def validate_rate(value: str) -> str:
    """Validate a traffic-control rate or burst such as ``10mbit``."""
    if not _RATE_PATTERN.match(value):
        raise ValueError(f"invalid rate: {value}")
    return value


def validate_device_path(path: str) -> str:
    """Validate an absolute, normalized device path."""
    if not path.startswith("/"):
        raise ValueError(f"device path must be absolute: {path}")
    if ".." in path.split("/"):
        raise ValueError(f"device path must not contain '..': {path}")
    if posixpath.normpath(path) != path:
        raise ValueError(f"device path must be normalized: {path}")
    return path


def validate_device_options(options: Iterable[str]) -> List[str]:
    """Validate device options and reject contradictory pairs."""
    options = list(options)
    lowered = {opt.lower() for opt in options}
    for opt in lowered:
        if opt not in DEVICE_OPTIONS:
            raise ValueError(f"invalid device option: {opt}")
    if {"ro", "rw"} <= lowered:
        raise ValueError("conflicting device options: ro and rw")
    if {"required", "optional"} <= lowered:
        raise ValueError("conflicting device options: required and optional")
    return options


def validate_config_value(value: str, field: str = "value") -> str:
    """Reject control characters in a value written to a config line.

    A newline would start a new ``key = value`` directive.
    """
    for char in value:
        if ord(char) < 32 or ord(char) == 127:
            raise ValueError(f"{field} must not contain control characters: {value!r}")
    return value


def validate_mount_field(value: str, field: str = "mount field") -> str:
    """Validate one whitespace-separated field of a mount entry."""
    validate_config_value(value, field)
    if not value or any(char.isspace() for char in value):
        raise ValueError(f"{field} must be non-empty and contain no whitespace: {value!r}")
    return value

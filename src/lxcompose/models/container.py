"""Container specification models."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from lxcompose import validation
from lxcompose.errors import SpecValidationError


# Top-level single-interface keys accepted on a network block and the
# interface fields they map to.
LEGACY_NETWORK_KEYS = {
    "type": "kind",
    "bridge": "bridge_name",
    "interface": "host_side_name",
    "ip": "static_ip",
    "gateway": "gateway",
    "dns": "dns",
    "dhcp": "dhcp",
    "hostname": "hostname",
    "mtu": "mtu",
    "mac": "mac_address",
    "isolated": "isolated",
}


class ResourcesSpec(BaseModel):
    """CPU and memory limits."""
    model_config = ConfigDict(extra="forbid")

    cpu_shares: Optional[int] = Field(None, ge=0)
    cpu_quota: Optional[int] = Field(None, ge=-1)
    cpu_period: Optional[int] = Field(None, gt=0)
    core_count: Optional[int] = Field(None, gt=0)
    memory_limit: Optional[str] = Field(None, description="Size string such as 512M")
    memory_swap: Optional[str] = Field(None, description="Size string such as 1G")

    @field_validator("memory_limit", "memory_swap")
    @classmethod
    def check_size(cls, v):
        """Validate memory size strings."""
        if v is None:
            return v
        return validation.validate_size(v)


class BandwidthLimit(BaseModel):
    """Traffic-control limits for one interface."""
    model_config = ConfigDict(extra="forbid")

    ingress_rate: Optional[str] = None
    ingress_burst: Optional[str] = None
    egress_rate: Optional[str] = None
    egress_burst: Optional[str] = None

    @field_validator("ingress_rate", "ingress_burst", "egress_rate", "egress_burst")
    @classmethod
    def check_rate(cls, v):
        if v is None:
            return v
        return validation.validate_rate(v)


class InterfaceSpec(BaseModel):
    """One network interface."""
    model_config = ConfigDict(extra="forbid")

    kind: Literal["none", "veth", "bridge", "macvlan", "phys"] = Field(default="veth")
    bridge_name: Optional[str] = None
    host_side_name: Optional[str] = None
    static_ip: Optional[str] = Field(None, description="Address with optional /prefix")
    gateway: Optional[str] = None
    dns: List[str] = Field(default_factory=list)
    dhcp: bool = False
    hostname: Optional[str] = None
    mtu: Optional[int] = None
    mac_address: Optional[str] = None
    bandwidth: Optional[BandwidthLimit] = None
    isolated: bool = False

    @field_validator("static_ip")
    @classmethod
    def check_static_ip(cls, v):
        if v is None:
            return v
        return validation.validate_ip(v)

    @field_validator("gateway")
    @classmethod
    def check_gateway(cls, v):
        if v is None:
            return v
        _, prefix = validation.split_address(v)
        if prefix is not None:
            raise ValueError(f"invalid gateway address: {v}")
        return v

    @field_validator("dns")
    @classmethod
    def check_dns(cls, v):
        return validation.validate_dns_servers(v)

    @field_validator("host_side_name", "bridge_name")
    @classmethod
    def check_interface_names(cls, v):
        if v is None:
            return v
        return validation.validate_interface_name(v)

    @field_validator("hostname")
    @classmethod
    def check_hostname(cls, v):
        if v is None:
            return v
        return validation.validate_hostname(v)

    @field_validator("mtu")
    @classmethod
    def check_mtu(cls, v):
        if v is None:
            return v
        return validation.validate_mtu(v)

    @field_validator("mac_address")
    @classmethod
    def check_mac(cls, v):
        if v is None:
            return v
        return validation.validate_mac(v)

    @model_validator(mode="after")
    def check_consistency(self):
        """Reject contradictory interface settings."""
        if self.kind == "bridge" and not self.bridge_name:
            raise ValueError("bridge interface requires a bridge_name")
        if self.dhcp and (self.static_ip or self.gateway):
            raise ValueError("cannot specify static IP or gateway when DHCP is enabled")
        if self.bandwidth is not None and not self.host_side_name:
            raise ValueError("bandwidth limit requires a host_side_name")
        return self


class NetworkSpec(BaseModel):
    """Network configuration.

    Accepts the list form (``interfaces``) and the single-interface form
    where interface fields sit directly on the network block. The latter is
    folded into a first interface.
    """
    model_config = ConfigDict(extra="forbid")

    interfaces: List[InterfaceSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_legacy(cls, data: Any) -> Any:
        """Fold top-level interface keys into the interface list."""
        if not isinstance(data, dict):
            return data
        legacy = {key: data[key] for key in LEGACY_NETWORK_KEYS if key in data}
        if not legacy:
            return data

        data = {key: value for key, value in data.items() if key not in LEGACY_NETWORK_KEYS}
        interface = {LEGACY_NETWORK_KEYS[key]: value for key, value in legacy.items()}
        data["interfaces"] = [interface] + list(data.get("interfaces") or [])
        return data

    def isolated_interface(self) -> Optional[InterfaceSpec]:
        """Return the first interface requesting isolation, if any."""
        for interface in self.interfaces:
            if interface.isolated:
                return interface
        return None

    def forwarding_address(self) -> Optional[str]:
        """Return the first static address without its prefix."""
        for interface in self.interfaces:
            if interface.static_ip and not interface.dhcp:
                return interface.static_ip.split("/", 1)[0]
        return None


class PortForward(BaseModel):
    """Host to container port mapping."""
    model_config = ConfigDict(extra="forbid")

    protocol: Literal["tcp", "udp"] = "tcp"
    host_port: int = Field(..., ge=1, le=65535)
    guest_port: int = Field(..., ge=1, le=65535)


class Mount(BaseModel):
    """Additional mount entry."""
    model_config = ConfigDict(extra="forbid")

    source: str
    target: str
    kind: str = Field(default="none", description="Filesystem type")
    options: List[str] = Field(default_factory=list)

    @field_validator("source", "target", "kind")
    @classmethod
    def check_field(cls, v, info):
        return validation.validate_mount_field(v, info.field_name)

    @field_validator("options")
    @classmethod
    def check_options(cls, v):
        for option in v:
            validation.validate_mount_field(option, "mount option")
            if "," in option:
                raise ValueError(f"mount option must not contain a comma: {option!r}")
        return v


class StorageSpec(BaseModel):
    """Root filesystem and mount configuration."""
    model_config = ConfigDict(extra="forbid")

    root_size: Optional[str] = Field(default="10G")
    backend: Literal["dir", "zfs", "btrfs", "lvm"] = Field(default="dir")
    pool: Optional[str] = None
    auto_mount: bool = Field(default=True)
    mounts: List[Mount] = Field(default_factory=list)

    @field_validator("root_size")
    @classmethod
    def check_root_size(cls, v):
        if v is None:
            return v
        return validation.validate_size(v)

    @field_validator("pool")
    @classmethod
    def check_pool(cls, v):
        if v is None:
            return v
        return validation.validate_config_value(v, "pool")


class SecuritySpec(BaseModel):
    """Isolation and confinement settings."""
    model_config = ConfigDict(extra="forbid")

    isolation: Literal["default", "strict", "privileged"] = Field(default="default")
    privileged: bool = False
    apparmor_profile: Optional[str] = None
    selinux_context: Optional[str] = None
    seccomp_profile: Optional[str] = None
    capabilities: List[str] = Field(default_factory=list)

    @field_validator("apparmor_profile", "selinux_context", "seccomp_profile")
    @classmethod
    def check_profile(cls, v, info):
        if v is None:
            return v
        return validation.validate_config_value(v, info.field_name)

    @field_validator("capabilities")
    @classmethod
    def check_capabilities(cls, v):
        """Every capability must name a Linux capability."""
        for cap in v:
            validation.resolve_capability(cap)
        return v

    @model_validator(mode="after")
    def check_isolation(self):
        """Isolation level and the privileged flag must agree."""
        if self.isolation == "strict" and self.privileged:
            raise ValueError("strict isolation cannot be combined with privileged mode")
        if self.privileged and self.isolation != "privileged":
            raise ValueError("privileged mode requires privileged isolation")
        if self.isolation == "privileged" and not self.privileged:
            raise ValueError("privileged isolation requires privileged to be true")
        return self

    def canonical_capabilities(self) -> List[str]:
        """Capabilities as lowercase names without the CAP_ prefix."""
        return [validation.resolve_capability(cap) for cap in self.capabilities]


class DeviceSpec(BaseModel):
    """Host device passed into the container."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., pattern=r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$", max_length=64)
    kind: Literal["unix-char", "unix-block", "nic", "disk", "gpu", "usb", "pci"]
    source: str
    destination: Optional[str] = None
    options: List[str] = Field(default_factory=list)

    @field_validator("source", "destination")
    @classmethod
    def check_path(cls, v):
        if v is None:
            return v
        return validation.validate_device_path(v)

    @field_validator("options")
    @classmethod
    def check_options(cls, v):
        return validation.validate_device_options(v)


class ContainerSpec(BaseModel):
    """Declarative description of one container."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Container name")
    image: Optional[str] = Field(None, description="Image reference")
    resources: ResourcesSpec = Field(default_factory=ResourcesSpec)
    network: NetworkSpec = Field(default_factory=NetworkSpec)
    port_forwards: List[PortForward] = Field(default_factory=list)
    storage: Optional[StorageSpec] = None
    security: Optional[SecuritySpec] = None
    environment: Dict[str, str] = Field(default_factory=dict)
    entrypoint: List[str] = Field(default_factory=list)
    command: List[str] = Field(default_factory=list)
    devices: List[DeviceSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def lift_port_forwards(cls, data: Any) -> Any:
        """Move ``network.port_forwards`` to the top level."""
        if not isinstance(data, dict):
            return data
        network = data.get("network")
        if isinstance(network, dict) and "port_forwards" in network:
            network = dict(network)
            nested = network.pop("port_forwards") or []
            data = dict(data)
            data["network"] = network
            data["port_forwards"] = list(data.get("port_forwards") or []) + list(nested)
        return data

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return validation.validate_name(v)

    @field_validator("environment")
    @classmethod
    def check_environment(cls, v):
        for key, value in v.items():
            if not key or "=" in key or any(char.isspace() for char in key):
                raise ValueError(f"invalid environment variable name: {key!r}")
            validation.validate_config_value(key, "environment variable name")
            validation.validate_config_value(value, f"environment variable {key}")
        return v

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "ContainerSpec":
        """Build a spec from raw data, raising SpecValidationError on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SpecValidationError(format_validation_error(e), errors=e.errors()) from e


def format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into a single readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        message = item["msg"]
        parts.append(f"{location}: {message}" if location else message)
    return "invalid container spec: " + "; ".join(parts)


def validate_spec(spec: ContainerSpec) -> ContainerSpec:
    """Re-run all validators over an existing spec."""
    return ContainerSpec.parse(spec.model_dump())

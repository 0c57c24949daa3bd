"""Network interface, traffic control and port forwarding directives."""

import ipaddress
import logging
from pathlib import Path
from typing import List

from lxcompose.errors import SpecValidationError
from lxcompose.models.container import ContainerSpec, InterfaceSpec, PortForward
from lxcompose.translator.base import (
    FIREWALL_FILE,
    NETWORK_FILE,
    TRAFFIC_FILE,
    GeneratedFile,
    Translation,
    TranslatorSection,
)
from lxcompose.utils.templates import render_template
from lxcompose.validation import split_address


logger = logging.getLogger(__name__)

FIREWALL_TEMPLATE = """\
# Port forwarding rules for {{ name }}
{% for rule in rules -%}
iptables -t nat -A PREROUTING {{ rule }}
{% endfor -%}
"""

TRAFFIC_CLASSES = (
    ("1:10", "ingress_rate", "ingress_burst"),
    ("1:20", "egress_rate", "egress_burst"),
)


def forward_rule(forward: PortForward, address: str) -> str:
    """Match criteria and target shared by the add and delete hooks."""
    return (
        f"-p {forward.protocol} --dport {forward.host_port} "
        f"-j DNAT --to {address}:{forward.guest_port}"
    )


def interface_lines(index: int, interface: InterfaceSpec) -> List[str]:
    """Directives for one interface."""
    prefix = f"lxc.net.{index}"
    lines = [f"{prefix}.type = {interface.kind}"]

    if interface.bridge_name:
        lines.append(f"{prefix}.link = {interface.bridge_name}")
    if interface.host_side_name:
        lines.append(f"{prefix}.name = {interface.host_side_name}")
    lines.append(f"{prefix}.flags = up")

    if interface.dhcp:
        lines.append(f"{prefix}.ipv4.method = dhcp")
        lines.append(f"{prefix}.ipv6.method = dhcp")
    elif interface.static_ip:
        address, _ = split_address(interface.static_ip)
        lines.append(f"{prefix}.ipv{address.version}.address = {interface.static_ip}")
        if interface.gateway:
            gateway, _ = split_address(interface.gateway)
            lines.append(f"{prefix}.ipv{gateway.version}.gateway = {interface.gateway}")

    positions = {4: 0, 6: 0}
    for server in interface.dns:
        version = ipaddress.ip_address(server).version
        lines.append(f"{prefix}.ipv{version}.nameserver.{positions[version]} = {server}")
        positions[version] += 1

    if interface.hostname:
        lines.append(f"{prefix}.hostname = {interface.hostname}")
    if interface.mtu:
        lines.append(f"{prefix}.mtu = {interface.mtu}")
    if interface.mac_address:
        lines.append(f"{prefix}.hwaddr = {interface.mac_address}")
    return lines


def traffic_commands(interface: InterfaceSpec) -> List[str]:
    """tc commands for an interface with a bandwidth limit, setup first."""
    limit = interface.bandwidth
    device = interface.host_side_name
    commands = [f"tc qdisc add dev {device} root handle 1: htb default 10"]
    for classid, rate_field, burst_field in TRAFFIC_CLASSES:
        rate = getattr(limit, rate_field)
        if not rate:
            continue
        command = f"tc class add dev {device} parent 1: classid {classid} htb rate {rate}"
        burst = getattr(limit, burst_field)
        if burst:
            command += f" burst {burst}"
        commands.append(command)
    commands.append(f"tc qdisc del dev {device} root")
    return commands


class NetworkSection(TranslatorSection):
    """Translate interfaces, bandwidth limits and port forwards."""

    name = "network"

    def apply(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        network_lines: List[str] = []
        traffic_rules: List[str] = []

        if spec.network.isolated_interface() is not None:
            logger.debug(f"Container {spec.name} requests network isolation")
            network_lines.append("lxc.net.0.flags = down")
            result.lines.extend(network_lines)
            self._add_file(result, container_dir / NETWORK_FILE, network_lines)
            return

        for index, interface in enumerate(spec.network.interfaces):
            lines = interface_lines(index, interface)
            if interface.bandwidth is not None:
                commands = traffic_commands(interface)
                traffic_rules.extend(commands)
                lines.extend(f"lxc.hook.pre-start = {command}" for command in commands[:-1])
                lines.append(f"lxc.hook.post-stop = {commands[-1]}")
            network_lines.extend(lines)

        result.lines.extend(network_lines)
        if network_lines:
            self._add_file(result, container_dir / NETWORK_FILE, network_lines)
        if traffic_rules:
            self._add_file(result, container_dir / TRAFFIC_FILE, traffic_rules)

        if spec.port_forwards:
            self._apply_port_forwards(spec, container_dir, result)

    def _apply_port_forwards(self, spec: ContainerSpec, container_dir: Path, result: Translation) -> None:
        """Emit paired iptables hooks for each port forward."""
        address = spec.network.forwarding_address()
        if address is None:
            raise SpecValidationError(
                "port forwarding requires an interface with a static IP address",
                name=spec.name,
            )

        rules = []
        for forward in spec.port_forwards:
            rule = forward_rule(forward, address)
            rules.append(rule)
            result.add("lxc.hook.pre-start", f"iptables -t nat -A PREROUTING {rule}")
            result.add("lxc.hook.post-stop", f"iptables -t nat -D PREROUTING {rule}")

        content = render_template(FIREWALL_TEMPLATE, name=spec.name, rules=rules)
        result.files[container_dir / FIREWALL_FILE] = GeneratedFile(content=content)

    @staticmethod
    def _add_file(result: Translation, path: Path, lines: List[str]) -> None:
        result.files[path] = GeneratedFile(content="".join(f"{line}\n" for line in lines))

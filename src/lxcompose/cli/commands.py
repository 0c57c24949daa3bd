"""Command implementations for CLI."""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from lxcompose.cli.client import Services
from lxcompose.engine.config import load_spec_file
from lxcompose.engine.logs import LogOptions
from lxcompose.errors import SpecValidationError
from lxcompose.models.state import ContainerRecord, ContainerStatus


console = Console()
stderr_console = Console(stderr=True)

STATUS_STYLES = {
    ContainerStatus.RUNNING: "green",
    ContainerStatus.STOPPED: "red",
    ContainerStatus.FROZEN: "yellow",
}


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _status_text(status: ContainerStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def create_container(services: Services, spec_file: Path, name: Optional[str] = None):
    """Create a container from a spec file."""
    spec = load_spec_file(spec_file, name=name)
    record = services.controller.create(spec)
    console.print(f"[green]✓[/green] Container {record.name} created")


def update_container(services: Services, spec_file: Path, name: Optional[str] = None):
    """Apply a changed spec file to an existing container."""
    spec = load_spec_file(spec_file, name=name)
    record = services.controller.update(spec)
    console.print(f"[green]✓[/green] Container {record.name} updated ({record.status.value})")


def container_action(services: Services, action: str, name: str):
    """Run a lifecycle operation by name."""
    operation = getattr(services.controller, action)
    record = operation(name)
    console.print(f"[green]✓[/green] Container {name}: {_status_text(record.status)}")


def remove_container(services: Services, name: str):
    """Remove a stopped container."""
    services.controller.remove(name)
    console.print(f"[green]✓[/green] Container {name} removed")


def list_containers(services: Services):
    """Show all containers in a table."""
    records = services.controller.list()
    if not records:
        console.print("No containers")
        return

    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Image", style="magenta")
    table.add_column("Created", style="dim")
    table.add_column("Last started", style="dim")

    for record in records:
        table.add_row(
            record.name,
            _status_text(record.status),
            record.spec.image or "-",
            _format_time(record.created_at),
            _format_time(record.last_started_at),
        )

    console.print(table)


def show_status(services: Services, name: str):
    """Show one container's record."""
    record: ContainerRecord = services.controller.get(name)

    table = Table(show_header=False, title=f"Container {name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", _status_text(record.status))
    table.add_row("Image", record.spec.image or "-")
    table.add_row("Created", _format_time(record.created_at))
    table.add_row("Last started", _format_time(record.last_started_at))
    table.add_row("Last stopped", _format_time(record.last_stopped_at))
    table.add_row("Config", str(services.controller.container_dir(name) / "config"))

    console.print(table)


def show_logs(
    services: Services,
    name: str,
    follow: bool = False,
    tail: int = 0,
    since: Optional[datetime] = None,
    timestamps: bool = True,
):
    """Write container logs to stdout."""
    options = LogOptions(follow=follow, tail=tail, since=since, timestamps=timestamps)
    stream = services.logs.get_logs(name, options)

    if not follow:
        typer.echo(stream.read(), nl=False)
        return

    with stream:
        try:
            for chunk in stream:
                typer.echo(chunk, nl=False)
        except KeyboardInterrupt:
            stderr_console.print("\nStopped following logs")


def show_stats(services: Services, name: str):
    """Show per-interface network counters."""
    stats = services.controller.network_stats(name)
    if not stats:
        console.print(f"No network interfaces for {name}")
        return

    table = Table(title=f"Network {name}")
    table.add_column("Interface", style="cyan")
    for column in ("RX bytes", "RX packets", "RX errors", "RX dropped",
                   "TX bytes", "TX packets", "TX errors", "TX dropped"):
        table.add_column(column, justify="right")

    for stat in stats:
        table.add_row(
            stat.interface,
            *(str(value) for value in (
                stat.rx_bytes, stat.rx_packets, stat.rx_errors, stat.rx_dropped,
                stat.tx_bytes, stat.tx_packets, stat.tx_errors, stat.tx_dropped,
            )),
        )

    console.print(table)


def _read_overrides(overrides_file: Optional[Path]) -> Dict[str, Any]:
    if overrides_file is None:
        return {}
    try:
        data = YAML(typ="safe").load(overrides_file.read_text())
    except YAMLError as e:
        raise SpecValidationError(f"invalid YAML in {overrides_file}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SpecValidationError(f"expected a mapping in {overrides_file}")
    return data


def create_template(services: Services, container: str, template: str, description: str = ""):
    """Capture a container as a template."""
    services.templates.create_template(container, template, description)
    console.print(f"[green]✓[/green] Template {template} created from {container}")


def list_templates(services: Services):
    """Show all templates in a table."""
    templates = services.templates.list_templates()
    if not templates:
        console.print("No templates")
        return

    table = Table(title="Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Description")
    table.add_column("Created", style="dim")

    for template in templates:
        table.add_row(
            template.name,
            template.source_container,
            template.description or "-",
            _format_time(template.created_at),
        )

    console.print(table)


def delete_template(services: Services, template: str):
    """Delete a template."""
    services.templates.delete_template(template)
    console.print(f"[green]✓[/green] Template {template} deleted")


def create_from_template(
    services: Services,
    template: str,
    name: str,
    overrides_file: Optional[Path] = None,
):
    """Create a container from a template."""
    overrides = _read_overrides(overrides_file)
    record = services.templates.create_from_template(template, name, overrides)
    console.print(f"[green]✓[/green] Container {record.name} created from template {template}")

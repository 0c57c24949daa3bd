"""Main CLI implementation using Typer."""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from rich.console import Console

from lxcompose.cli import client
from lxcompose.cli.commands import (
    container_action,
    create_container,
    create_from_template,
    create_template,
    delete_template,
    list_containers,
    list_templates,
    remove_container,
    show_logs,
    show_stats,
    show_status,
    update_container,
)
from lxcompose.errors import LxcomposeError


app = typer.Typer(
    name="lxcompose",
    help="lxcompose - LXC container lifecycle management",
    add_completion=False,
)

console = Console(stderr=True)

CONFIG_OPTION_HELP = "Settings file (defaults to $LXCOMPOSE_CONFIG)"


def _run_cli_command(handler: Callable[..., Any], config: Optional[Path], **kwargs: Any):
    """Helper to run a CLI command with local services and error handling."""
    try:
        services = client.connect(config)
        handler(services, **kwargs)
    except LxcomposeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _parse_since(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise typer.BadParameter(f"not an ISO-8601 timestamp: {value}") from None


@app.command("create")
def create_command(
    spec_file: Path = typer.Argument(..., help="Container spec YAML file", exists=True, dir_okay=False),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Override the container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Create a container from a spec file."""
    _run_cli_command(create_container, config=config, spec_file=spec_file, name=name)


@app.command("update")
def update_command(
    spec_file: Path = typer.Argument(..., help="Container spec YAML file", exists=True, dir_okay=False),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Override the container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Regenerate an existing container's configuration."""
    _run_cli_command(update_container, config=config, spec_file=spec_file, name=name)


@app.command("start")
def start_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Start a stopped container."""
    _run_cli_command(container_action, config=config, action="start", name=name)


@app.command("stop")
def stop_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Stop a running or paused container."""
    _run_cli_command(container_action, config=config, action="stop", name=name)


@app.command("pause")
def pause_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Freeze a running container."""
    _run_cli_command(container_action, config=config, action="pause", name=name)


@app.command("resume")
def resume_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Thaw a paused container."""
    _run_cli_command(container_action, config=config, action="resume", name=name)


@app.command("restart")
def restart_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Restart a container."""
    _run_cli_command(container_action, config=config, action="restart", name=name)


@app.command("remove")
def remove_command(
    name: str = typer.Argument(..., help="Container name"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Remove without confirmation"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Remove a stopped container completely."""
    if not force:
        confirm = typer.confirm(f"Remove container {name}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(remove_container, config=config, name=name)


@app.command("ps")
def ps_command(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """List containers."""
    _run_cli_command(list_containers, config=config)


@app.command("status")
def status_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show one container's state."""
    _run_cli_command(show_status, config=config, name=name)


@app.command("stats")
def stats_command(
    name: str = typer.Argument(..., help="Container name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show a running container's network counters."""
    _run_cli_command(show_stats, config=config, name=name)


@app.command("logs")
def logs_command(
    name: str = typer.Argument(..., help="Container name"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep streaming new output"),
    tail: int = typer.Option(0, "--tail", "-n", min=0, help="Only the last N lines (0 for all)"),
    since: Optional[str] = typer.Option(None, "--since", help="Only lines at or after this ISO-8601 time"),
    timestamps: bool = typer.Option(True, "--timestamps/--no-timestamps", help="Keep line timestamps"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show container console output."""
    _run_cli_command(
        show_logs,
        config=config,
        name=name,
        follow=follow,
        tail=tail,
        since=_parse_since(since),
        timestamps=timestamps,
    )


# Template subcommands
template_app = typer.Typer(help="Template management commands")
app.add_typer(template_app, name="template")


@template_app.command("create")
def template_create_command(
    container: str = typer.Argument(..., help="Source container"),
    template: str = typer.Argument(..., help="Template name"),
    description: str = typer.Option("", "--description", "-d", help="Template description"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Capture a container as a template."""
    _run_cli_command(
        create_template, config=config, container=container, template=template, description=description
    )


@template_app.command("list")
def template_list_command(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """List templates."""
    _run_cli_command(list_templates, config=config)


@template_app.command("delete")
def template_delete_command(
    template: str = typer.Argument(..., help="Template name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Delete a template."""
    _run_cli_command(delete_template, config=config, template=template)


@template_app.command("use")
def template_use_command(
    template: str = typer.Argument(..., help="Template name"),
    name: str = typer.Argument(..., help="New container name"),
    overrides: Optional[Path] = typer.Option(
        None, "--overrides", "-o", help="YAML file with spec fields to override", exists=True, dir_okay=False
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Create a container from a template."""
    _run_cli_command(
        create_from_template, config=config, template=template, name=name, overrides_file=overrides
    )


def main():
    """Main entry point for CLI."""
    app()

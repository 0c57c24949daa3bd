"""Tests for CLI main module."""

import pytest
from unittest.mock import MagicMock, patch

import typer
from typer.testing import CliRunner

from lxcompose.cli import client
from lxcompose.cli.client import Services
from lxcompose.cli.main import _parse_since, _run_cli_command, app
from lxcompose.errors import NotFoundError
from lxcompose.models.state import ContainerStatus


runner = CliRunner()

SPEC_YAML = """\
name: web
image: alpine:3.19
command: ["sleep", "infinity"]
environment:
  MODE: dev
"""


@patch("lxcompose.cli.main.client")
@patch("lxcompose.cli.main.console")
def test_run_cli_command_success(mock_console, mock_client):
    """Test the CLI command runner on a successful execution."""
    mock_handler = MagicMock()

    _run_cli_command(mock_handler, config="/etc/lxcompose.yaml", arg1="value1")

    mock_client.connect.assert_called_once_with("/etc/lxcompose.yaml")
    mock_handler.assert_called_once_with(mock_client.connect.return_value, arg1="value1")
    mock_console.print.assert_not_called()


@patch("lxcompose.cli.main.client")
@patch("lxcompose.cli.main.console")
def test_run_cli_command_error(mock_console, mock_client):
    """Test the CLI command runner when the handler fails."""
    mock_handler = MagicMock(side_effect=NotFoundError("container 'web' not found"))

    with pytest.raises(typer.Exit) as exc_info:
        _run_cli_command(mock_handler, config=None, name="web")

    mock_handler.assert_called_once_with(mock_client.connect.return_value, name="web")
    mock_console.print.assert_called_once_with("[red]Error:[/red] container 'web' not found")
    assert exc_info.value.exit_code == 1


def test_parse_since():
    """Test ISO timestamps with a Z suffix are accepted."""
    assert _parse_since(None) is None
    assert _parse_since("2024-05-01T10:00:00Z").utcoffset().total_seconds() == 0

    with pytest.raises(typer.BadParameter):
        _parse_since("yesterday")


@pytest.fixture
def services(settings, fake_runner):
    """Services wired to the fake runner, returned by every connect call."""
    services = Services.from_settings(settings, fake_runner)
    with patch.object(client, "connect", return_value=services):
        yield services


@pytest.fixture
def spec_file(tmp_path):
    path = tmp_path / "web.yaml"
    path.write_text(SPEC_YAML)
    return path


class TestContainerCommands:
    """Container commands run end to end against the fake runtime."""

    def test_create(self, services, spec_file):
        """Test create records the container."""
        result = runner.invoke(app, ["create", str(spec_file)])

        assert result.exit_code == 0
        assert "Container web created" in result.output
        assert services.controller.store.get("web").spec.environment == {"MODE": "dev"}

    def test_create_with_name(self, services, spec_file):
        """Test --name overrides the name in the file."""
        result = runner.invoke(app, ["create", str(spec_file), "--name", "api"])

        assert result.exit_code == 0
        assert services.controller.store.exists("api")
        assert not services.controller.store.exists("web")

    def test_create_invalid_spec(self, services, tmp_path):
        """Test validation errors are reported and exit non-zero."""
        path = tmp_path / "bad.yaml"
        path.write_text("name: web\nresources:\n  cpu_shares: -1\n")

        result = runner.invoke(app, ["create", str(path)])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "cpu_shares" in result.output

    def test_lifecycle(self, services, spec_file):
        """Test start, pause, resume, restart and stop."""
        runner.invoke(app, ["create", str(spec_file)])

        for command, status in [
            ("start", "RUNNING"),
            ("pause", "FROZEN"),
            ("resume", "RUNNING"),
            ("restart", "RUNNING"),
            ("stop", "STOPPED"),
        ]:
            result = runner.invoke(app, [command, "web"])
            assert result.exit_code == 0, result.output
            assert status in result.output

        assert services.controller.store.get("web").status == ContainerStatus.STOPPED

    def test_invalid_transition(self, services, spec_file):
        """Test illegal transitions exit with an error."""
        runner.invoke(app, ["create", str(spec_file)])

        result = runner.invoke(app, ["stop", "web"])

        assert result.exit_code == 1
        assert "cannot stop container 'web'" in result.output

    def test_unknown_container(self, services):
        """Test unknown names exit with an error."""
        result = runner.invoke(app, ["start", "ghost"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_ps_and_status(self, services, spec_file):
        """Test list and status output."""
        runner.invoke(app, ["create", str(spec_file)])
        runner.invoke(app, ["start", "web"])

        ps = runner.invoke(app, ["ps"])
        status = runner.invoke(app, ["status", "web"])

        assert ps.exit_code == 0
        assert "web" in ps.output
        assert "RUNNING" in ps.output
        assert status.exit_code == 0
        assert "alpine:3.19" in status.output

    def test_ps_empty(self, services):
        """Test list output without containers."""
        result = runner.invoke(app, ["ps"])

        assert result.exit_code == 0
        assert "No containers" in result.output

    def test_update(self, services, spec_file, tmp_path):
        """Test update applies a changed spec."""
        runner.invoke(app, ["create", str(spec_file)])
        changed = tmp_path / "changed.yaml"
        changed.write_text(SPEC_YAML.replace("MODE: dev", "MODE: prod"))

        result = runner.invoke(app, ["update", str(changed)])

        assert result.exit_code == 0
        assert services.controller.store.get("web").spec.environment == {"MODE": "prod"}

    def test_remove_requires_confirmation(self, services, spec_file):
        """Test remove aborts when not confirmed."""
        runner.invoke(app, ["create", str(spec_file)])

        result = runner.invoke(app, ["remove", "web"], input="n\n")

        assert result.exit_code == 1
        assert services.controller.store.exists("web")

    def test_remove_force(self, services, spec_file):
        """Test remove --force deletes the container."""
        runner.invoke(app, ["create", str(spec_file)])

        result = runner.invoke(app, ["remove", "web", "--force"])

        assert result.exit_code == 0
        assert not services.controller.store.exists("web")

    def test_logs(self, services, spec_file):
        """Test log output honours --tail and --no-timestamps."""
        runner.invoke(app, ["create", str(spec_file)])
        log = services.controller.container_dir("web") / "console.log"
        log.write_text("[2024-05-01T10:00:00Z] one\n[2024-05-01T10:00:01Z] two\n")

        result = runner.invoke(app, ["logs", "web", "--tail", "1", "--no-timestamps"])

        assert result.exit_code == 0
        assert result.output == "two\n"

    def test_logs_follow(self, services, fake_runner, spec_file):
        """Test --follow streams new output and stops the follow process."""
        runner.invoke(app, ["create", str(spec_file)])
        fake_runner.follow_output = b"new line\n"

        result = runner.invoke(app, ["logs", "web", "--follow"])

        assert result.exit_code == 0
        assert "new line" in result.output
        fake_runner.spawned[0].terminate.assert_called_once()

    def test_stats(self, services, fake_runner, spec_file, tmp_path):
        """Test stats prints a row per interface of a running container."""
        net_dev = tmp_path / "proc" / str(fake_runner.INIT_PID) / "net" / "dev"
        net_dev.parent.mkdir(parents=True)
        net_dev.write_text(
            "Inter-|   Receive\n face |bytes\n"
            "  eth0: 10 1 0 0 0 0 0 0 20 2 0 0 0 0 0 0\n"
        )
        services.controller.runtime.config.net_dev_path = str(tmp_path / "proc" / "{pid}" / "net" / "dev")
        runner.invoke(app, ["create", str(spec_file)])
        runner.invoke(app, ["start", "web"])

        result = runner.invoke(app, ["stats", "web"])

        assert result.exit_code == 0, result.output
        assert "eth0" in result.output

    def test_stats_stopped(self, services, spec_file):
        """Test stats on a stopped container exits with an error."""
        runner.invoke(app, ["create", str(spec_file)])

        result = runner.invoke(app, ["stats", "web"])

        assert result.exit_code == 1
        assert "not running" in result.output

    def test_logs_bad_since(self, services, spec_file):
        """Test malformed --since values are usage errors."""
        runner.invoke(app, ["create", str(spec_file)])

        result = runner.invoke(app, ["logs", "web", "--since", "yesterday"])

        assert result.exit_code == 2


class TestTemplateCommands:
    """Template subcommands."""

    def test_template_flow(self, services, spec_file, tmp_path):
        """Test create, list, use and delete."""
        runner.invoke(app, ["create", str(spec_file)])
        overrides = tmp_path / "overrides.yaml"
        overrides.write_text("environment:\n  MODE: prod\n")

        created = runner.invoke(app, ["template", "create", "web", "web-tpl", "-d", "base image"])
        listed = runner.invoke(app, ["template", "list"])
        used = runner.invoke(app, ["template", "use", "web-tpl", "web-2", "-o", str(overrides)])
        deleted = runner.invoke(app, ["template", "delete", "web-tpl"])

        assert created.exit_code == 0
        assert "web-tpl" in listed.output
        assert used.exit_code == 0, used.output
        assert services.controller.store.get("web-2").spec.environment == {"MODE": "prod"}
        assert deleted.exit_code == 0
        assert services.templates.list_templates() == []

    def test_template_list_empty(self, services):
        """Test listing without templates."""
        result = runner.invoke(app, ["template", "list"])

        assert "No templates" in result.output

    def test_use_unknown_template(self, services):
        """Test using a missing template fails."""
        result = runner.invoke(app, ["template", "use", "ghost", "web"])

        assert result.exit_code == 1
        assert "template 'ghost' not found" in result.output

    def test_overrides_must_be_mapping(self, services, spec_file, tmp_path):
        """Test override files must hold a mapping."""
        runner.invoke(app, ["create", str(spec_file)])
        runner.invoke(app, ["template", "create", "web", "web-tpl"])
        overrides = tmp_path / "overrides.yaml"
        overrides.write_text("- a\n- b\n")

        result = runner.invoke(app, ["template", "use", "web-tpl", "web-2", "-o", str(overrides)])

        assert result.exit_code == 1
        assert "expected a mapping" in result.output

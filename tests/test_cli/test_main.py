"""Tests for CLI main module."""

import pytest
from unittest.mock import MagicMock, patch

import typer
from typer.testing import CliRunner

from grafana_forge.cli.main import _run_cli_command, app
from grafana_forge.errors import AssemblyError, StageBuildError


runner = CliRunner()


@patch("grafana_forge.cli.main.console")
def test_run_cli_command_success(mock_console):
    """Test the CLI command runner on a successful execution."""
    mock_handler = MagicMock(return_value="ok")

    assert _run_cli_command(mock_handler, arg1="value1") == "ok"

    mock_handler.assert_called_once_with(arg1="value1")
    mock_console.print.assert_not_called()


@patch("grafana_forge.cli.main.console")
def test_run_cli_command_stage_error(mock_console):
    """Test that stage failures report stage and phase and exit non-zero."""
    error = StageBuildError("backend", "build", RuntimeError("exit status 2"))
    mock_handler = MagicMock(side_effect=error)

    with pytest.raises(typer.Exit) as exc_info:
        _run_cli_command(mock_handler)

    assert exc_info.value.exit_code == 1
    message = mock_console.print.call_args[0][0]
    assert "backend" in message
    assert "build" in message


@patch("grafana_forge.cli.main.console")
def test_run_cli_command_assembly_error(mock_console):
    mock_handler = MagicMock(side_effect=AssemblyError("copy", OSError("disk full")))

    with pytest.raises(typer.Exit):
        _run_cli_command(mock_handler)

    assert "copy" in mock_console.print.call_args[0][0]


@patch("grafana_forge.cli.main.run_build")
def test_build_passes_overrides(mock_run_build, tmp_path):
    result = runner.invoke(app, [
        "build", str(tmp_path), "--output", str(tmp_path / "dist"),
        "--go-build-tags", "enterprise", "--no-pack",
    ])

    assert result.exit_code == 0
    kwargs = mock_run_build.call_args.kwargs
    assert kwargs["overrides"] == {"pipeline": {"go_build_tags": "enterprise"}}
    assert kwargs["pack"] is False


def test_config_validate_invalid(tmp_path):
    path = tmp_path / "forge.yaml"
    path.write_text("pipeline:\n  log_level: LOUD\n")

    result = runner.invoke(app, ["config", "validate", "--config", str(path)])

    assert result.exit_code == 1


def test_config_validate_valid(tmp_path):
    path = tmp_path / "forge.yaml"
    path.write_text("pipeline:\n  go_build_tags: enterprise\n")

    result = runner.invoke(app, ["config", "validate", "--config", str(path)])

    assert result.exit_code == 0
    assert "valid" in result.output


def test_config_show():
    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    assert "GF_PATHS_HOME" in result.output

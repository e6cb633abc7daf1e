"""Main CLI implementation using Typer."""

from pathlib import Path
from typing import Any, Callable, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from grafana_forge.cli.commands import run_build, show_config, validate_config
from grafana_forge.errors import AssemblyError, ForgeError, StageBuildError
from grafana_forge.pipeline.config import cli_overrides


app = typer.Typer(
    name="grafana-forge",
    help="Hermetic Grafana build and image assembly",
    add_completion=False,
)

console = Console(stderr=True)


def _describe(error: Exception) -> str:
    if isinstance(error, StageBuildError):
        return f"stage [bold]{error.stage_name}[/bold], phase [bold]{error.phase}[/bold]: {error.cause}"
    if isinstance(error, AssemblyError):
        return f"assembly step [bold]{error.step}[/bold]: {error.cause}"
    return str(error)


def _run_cli_command(handler: Callable[..., Any], **kwargs: Any):
    """Helper to run a CLI command with error handling."""
    try:
        return handler(**kwargs)
    except (ForgeError, ValidationError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {_describe(e)}")
        raise typer.Exit(1) from e


@app.command("build")
def build_command(
    source: Path = typer.Argument(
        ..., exists=True, file_okay=False, help="Application source tree"
    ),
    output: Path = typer.Option(
        Path("./dist"), "--output", "-o", help="Output directory"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Pipeline config file"
    ),
    go_build_tags: Optional[str] = typer.Option(
        None, "--go-build-tags", help="Go build tags for the backend"
    ),
    wire_tags: Optional[str] = typer.Option(
        None, "--wire-tags", help="Wire tags for the backend"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level"
    ),
    pack: bool = typer.Option(
        True, "--pack/--no-pack", help="Write the image archive"
    ),
):
    """Build both stages and assemble the image."""
    overrides = cli_overrides(
        go_build_tags=go_build_tags,
        wire_tags=wire_tags,
        log_level=log_level,
    )
    _run_cli_command(
        run_build,
        source=source,
        output=output,
        config_file=config,
        overrides=overrides,
        pack=pack,
    )


# Config subcommands
config_app = typer.Typer(help="Configuration commands")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show_command(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Pipeline config file"
    ),
):
    """Show the resolved configuration."""
    _run_cli_command(show_config, config_file=config)


@config_app.command("validate")
def config_validate_command(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Pipeline config file"
    ),
):
    """Validate a configuration file."""
    _run_cli_command(validate_config, config_file=config)


def main():
    """Main entry point for CLI."""
    app()

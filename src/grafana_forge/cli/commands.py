"""Command implementations for CLI."""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table

from grafana_forge.assembly.image_config import build_image_config
from grafana_forge.assembly.packer import image_summary
from grafana_forge.pipeline.config import ConfigManager
from grafana_forge.pipeline.runner import Pipeline, PipelineResult
from grafana_forge.utils.logging import setup_logging


console = Console()


def run_build(
    source: Path,
    output: Path,
    config_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    pack: bool = True,
) -> PipelineResult:
    """Run the full pipeline and print a summary."""
    config = asyncio.run(ConfigManager(config_file).load(overrides))
    setup_logging(config.pipeline.log_level)

    pipeline = Pipeline(config=config, output_dir=output)
    result = asyncio.run(pipeline.run(source, pack=pack))

    table = Table(title="Build")
    table.add_column("Stage", style="cyan")
    table.add_column("Files", justify="right")
    for name in sorted(result.outputs):
        table.add_row(name, str(len(result.outputs[name].manifest)))
    console.print(table)

    steps = Table(title="Assembly")
    steps.add_column("Step", style="cyan")
    steps.add_column("Detail", style="dim")
    for step in result.steps:
        steps.add_row(step.step.value, step.detail or f"{len(step.paths)} paths")
    console.print(steps)

    console.print(f"[green]Root filesystem:[/green] {result.rootfs.root}")
    if result.image:
        for key, value in image_summary(result.image).items():
            console.print(f"[green]{key}:[/green] {value}")
    return result


def show_config(config_file: Optional[Path] = None):
    """Print the resolved configuration and image metadata."""
    config = asyncio.run(ConfigManager(config_file).load())

    table = Table(title="Pipeline")
    table.add_column("Option", style="cyan")
    table.add_column("Value")
    for key, value in config.pipeline.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)
    console.print()

    stages = Table(title="Stages")
    stages.add_column("Name", style="cyan")
    stages.add_column("Toolchains", style="magenta")
    stages.add_column("Build", style="dim")
    for name, spec in config.stages.items():
        stages.add_row(name, ", ".join(spec.toolchains), "\n".join(spec.build))
    console.print(stages)
    console.print()

    image_config = build_image_config(config)
    image = Table(title="Image")
    image.add_column("Field", style="cyan")
    image.add_column("Value")
    image.add_row("Env", "\n".join(image_config.env_list()))
    image.add_row("WorkingDir", image_config.working_dir)
    image.add_row("ExposedPorts", ", ".join(image_config.exposed_ports))
    image.add_row("User", image_config.user)
    image.add_row("Entrypoint", " ".join(image_config.entrypoint))
    for label, value in image_config.labels.items():
        image.add_row(f"Label {label}", value)
    console.print(image)


def validate_config(config_file: Optional[Path] = None):
    """Validate the configuration file."""
    asyncio.run(ConfigManager(config_file).load())
    console.print("[green]Configuration is valid[/green]")

"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from splitami.config import ConfigManager
from splitami.core.orchestrator import plan_split, split_image
from splitami.errors import SplitError
from splitami.models.config import SplitConfig
from splitami.models.run import SplitPlan, SplitResult
from splitami.utils.logging import setup_logging


app = typer.Typer(
    name="splitami",
    help="Split a single-volume EC2 AMI into a multi-volume AMI",
    add_completion=False,
)

console = Console()


def _load_config(config_file: Optional[Path], overrides: Dict[str, Any]) -> SplitConfig:
    """Load configuration and configure logging from it."""
    config = asyncio.run(ConfigManager(config_file).load(overrides))
    setup_logging(config.log_level)
    return config


def _run_cli_command(
    handler: Callable[..., Any],
    config_file: Optional[Path],
    overrides: Dict[str, Any],
    **kwargs: Any,
) -> Any:
    """Helper to run a split coroutine with error handling."""
    try:
        config = _load_config(config_file, overrides)
        return asyncio.run(handler(config=config, **kwargs))
    except SplitError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _print_result(result: SplitResult) -> None:
    table = Table(title=f"Image {result.image_id}")
    table.add_column("Device", style="cyan")
    table.add_column("Snapshot", style="magenta")
    table.add_column("Type")
    for mapping in result.block_device_mappings:
        ebs = mapping.ebs
        table.add_row(
            mapping.device_name,
            mapping.snapshot_id or mapping.virtual_name or "",
            (ebs.volume_type if ebs else "") or "",
        )
    console.print(table)
    console.print(f"[green]Created image {result.image_id}[/green] ({result.image_name})")


def _print_plan(plan: SplitPlan) -> None:
    table = Table(title=f"Split plan for {plan.source_image_id}")
    table.add_column("Order", justify="right")
    table.add_column("Path", style="cyan")
    table.add_column("Size (GiB)", justify="right")
    table.add_column("Local device")
    table.add_column("Image device", style="magenta")
    table.add_column("fstab entry", style="dim")
    for index, planned in enumerate(plan.paths, start=1):
        spec = planned.path_spec
        table.add_row(
            str(index),
            spec.mount_path,
            str(spec.volume_size),
            planned.local_device,
            planned.mapping_device,
            planned.fstab_line.replace("\t", " "),
        )
    console.print(f"Root volume will be staged at {plan.root_device}")
    console.print(table)


@app.command("split")
def split_command(
    source_image_id: str = typer.Argument(..., help="Source AMI id (ami-...)"),
    path_specs: Optional[List[str]] = typer.Argument(
        None, help="Paths to split off, as PATH:SIZE_GIB:MOUNT_OPTIONS"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
    public_snapshots: Optional[bool] = typer.Option(
        None, "--public-snapshots/--private-snapshots",
        help="Grant public create-volume permission on the snapshots",
    ),
    public_image: Optional[bool] = typer.Option(
        None, "--public-image/--private-image",
        help="Grant public launch permission on the new image",
    ),
    cleanup_on_failure: Optional[bool] = typer.Option(
        None, "--cleanup-on-failure/--keep-on-failure",
        help="Tear down created resources if the run fails",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Split an AMI's root volume into one volume per path."""
    overrides = {
        "publish.public_snapshots": public_snapshots,
        "publish.public_image": public_image,
        "cleanup_on_failure": cleanup_on_failure,
        "log_level": log_level,
    }
    result = _run_cli_command(
        split_image,
        config_file,
        overrides,
        source_image_id=source_image_id,
        path_args=path_specs or [],
    )
    _print_result(result)


@app.command("plan")
def plan_command(
    source_image_id: str = typer.Argument(..., help="Source AMI id (ami-...)"),
    path_specs: Optional[List[str]] = typer.Argument(
        None, help="Paths to split off, as PATH:SIZE_GIB:MOUNT_OPTIONS"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Show how an AMI would be split without creating anything."""
    plan = _run_cli_command(
        plan_split,
        config_file,
        {"log_level": log_level},
        source_image_id=source_image_id,
        path_args=path_specs or [],
    )
    _print_plan(plan)


def main():
    """Main entry point for CLI."""
    app()

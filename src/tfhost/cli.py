"""tfhost CLI entry point.

Version-management commands for a tfhost installation: show the load status,
list the TensorFlow variants available for this platform, activate one for
the next start, and pre-fetch model archives into the resource cache.
Configuration comes from TFHOST_ROOT / TFHOST_PLATFORM / TFHOST_BUNDLED_MODULE.
"""

import datetime
import logging
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from tfhost.config import load_settings
from tfhost.errors import TfHostError
from tfhost.lib.installer import select_variant
from tfhost.models import StatusKind
from tfhost.service import TensorFlowService

app = typer.Typer(
    name="tfhost",
    help="tfhost: manage the TensorFlow library and model cache of a tfhost installation.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

_STATUS_STYLES = {
    StatusKind.NOT_ATTEMPTED: "dim",
    StatusKind.LOADED: "green",
    StatusKind.CRASHED: "red",
    StatusKind.FAILED: "yellow",
}


class RichStatusSink:
    """StatusSink that drives one task of a rich Progress display."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task = progress.add_task("", total=None)

    def show_status(self, message: str) -> None:
        self._progress.update(self._task, description=message)

    def show_progress(self, current: int, maximum: int, message: str) -> None:
        self._progress.update(
            self._task,
            description=message,
            completed=current,
            total=maximum if maximum > 0 else None,
        )

    def clear_status(self) -> None:
        self._progress.update(self._task, description="", completed=0, total=None)


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def _fail(title: str, message: str) -> NoReturn:
    err_console.print(Panel(message, title=f"[red]{title}[/red]", border_style="red"))
    raise typer.Exit(1)


def _service(**kwargs) -> TensorFlowService:
    return TensorFlowService(load_settings(), **kwargs)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log at DEBUG level.")] = False,
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@app.command()
def status() -> None:
    """Load the TensorFlow library once and report the outcome."""
    try:
        service = _service()
        result = service.load_library()
    except TfHostError as e:
        _fail("Configuration Error", str(e))
    style = _STATUS_STYLES[result.kind]
    variant = result.variant
    console.print(Panel(
        f"Status:  [bold {style}]{result.kind.value}[/bold {style}]\n"
        f"Info:    {result.info}\n"
        f"Variant: {variant if variant is not None else '[dim]none[/dim]'}\n"
        f"Root:    [dim]{service.layout.root}[/dim]",
        title="[bold cyan]TensorFlow[/bold cyan]",
        border_style=style,
    ))


@app.command()
def versions() -> None:
    """List the TensorFlow variants that can be activated on this platform."""
    try:
        service = _service()
        active = service.active_version()
        available = service.available_versions()
    except TfHostError as e:
        _fail("Configuration Error", str(e))

    table = Table(title=f"TensorFlow variants for {service.layout.platform}")
    table.add_column("Version")
    table.add_column("Build")
    table.add_column("CUDA")
    table.add_column("CuDNN")
    table.add_column("Active", justify="center")
    table.add_column("Cached", justify="center")
    table.add_column("Origin", style="dim")
    for variant in available:
        build = "?" if variant.uses_gpu is None else ("GPU" if variant.uses_gpu else "CPU")
        if variant.bundled:
            build += " (bundled)"
        table.add_row(
            variant.version,
            build,
            variant.cuda or "",
            variant.cudnn or "",
            "*" if active is not None and variant == active else "",
            "*" if variant.is_cached else "",
            variant.origin_description(),
        )
    console.print(table)


@app.command()
def activate(
    version: Annotated[str, typer.Argument(help="Version to activate, e.g. 1.13.1.")],
    gpu: Annotated[
        Optional[bool],
        typer.Option("--gpu/--cpu", help="Pick the GPU or CPU build (default: CPU when both exist)."),
    ] = None,
) -> None:
    """Download and stage a TensorFlow variant; it is used after the next restart."""
    try:
        with _progress() as progress:
            service = _service(status=RichStatusSink(progress))
            variant = select_variant(
                service.available_versions(), version, gpu, service.layout.platform
            )
            installed = service.activate_version(variant)
    except TfHostError as e:
        _fail("Activation Error", str(e))
    console.print(Panel(
        f"[bold green]Activated {installed}[/bold green]\n\n"
        f"  From: [dim]{installed.origin_description()}[/dim]\n\n"
        f"Restart the application to load the new version.",
        title="[green]Restart Required[/green]",
        border_style="green",
    ))


@app.command()
def fetch(
    source: Annotated[str, typer.Argument(help="URL or local path of a model archive (ZIP or TAR.GZ).")],
    model_name: Annotated[str, typer.Argument(help="Name of the model directory to install into.")],
) -> None:
    """Download and unpack a model archive into the resource cache."""
    try:
        with _progress() as progress:
            service = _service(status=RichStatusSink(progress))
            model_dir = service.ensure_installed(source, model_name)
    except TfHostError as e:
        _fail("Install Error", str(e))
    console.print(f"[green]Installed[/green] {model_name}: [dim]{model_dir}[/dim]")


@app.command()
def models() -> None:
    """List the model archives installed in the resource cache."""
    try:
        service = _service()
    except TfHostError as e:
        _fail("Configuration Error", str(e))
    installed = service.cache.installed_models()
    if not installed:
        console.print(f"[dim]No models installed in {service.layout.models_dir}[/dim]")
        return
    table = Table(title="Installed models")
    table.add_column("Model")
    table.add_column("Kind")
    table.add_column("Entries", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Installed")
    table.add_column("Source", style="dim")
    for name, record in installed:
        if record is None:
            table.add_row(name, "?", "", "", "", "[yellow]no install record[/yellow]")
            continue
        installed_at = datetime.datetime.fromtimestamp(record.installed_at).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            name,
            record.kind,
            str(record.entries),
            str(record.bytes_written),
            installed_at,
            record.source,
        )
    console.print(table)

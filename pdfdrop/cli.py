"""
CLI Interface
=============
Command-line interface for the PDF drop pipeline.

Usage:
    python -m pdfdrop drop <pdf_path> [options]
    python -m pdfdrop pages <archive_path>
    python -m pdfdrop info <pdf_path>
"""

from __future__ import annotations

import asyncio
import json
import mimetypes
import os
import sys
import zipfile
import zlib
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from . import __version__
from .archive import ArchiveReader, open_archive
from .dom import DataTransfer, DragEvent, EventTarget
from .errors import EmptyArchiveError
from .host import CollectingNotifier, InMemoryHost, Viewport
from .inserter import decode_dimensions
from .interceptor import EventInterceptor, find_pdf
from .models import DropPayload, InsertionReport, PageEntry, PipelineStatus
from .pipeline import DropPipeline, PipelineConfig

console = Console()


def _load_payload(path: str) -> DropPayload:
    mime_type, _ = mimetypes.guess_type(path)
    return DropPayload(
        name=os.path.basename(path),
        mime_type=mime_type or "application/octet-stream",
        content=Path(path).read_bytes(),
    )


def _parse_viewport(value: str) -> Viewport:
    try:
        width, height = (float(part) for part in value.lower().split("x"))
    except ValueError:
        raise click.BadParameter(f"expected WIDTHxHEIGHT, got {value!r}")
    return Viewport(width=width, height=height)


async def simulate_drop(
    payload: DropPayload,
    pipeline: DropPipeline,
) -> tuple[DragEvent, list[InsertionReport], bool]:
    """
    Dispatch drag-over and drop events for `payload` on a fresh document
    with the interceptor attached and a host drop handler behind it.

    Returns:
        (drop event, pipeline reports, whether the host handler ran)
    """
    document = EventTarget()
    reports: list[InsertionReport] = []
    host_handled = []

    async def run_and_keep(p: DropPayload) -> InsertionReport:
        report = await pipeline.run(p)
        reports.append(report)
        return report

    document.add_event_listener("drop", lambda e: host_handled.append(e))

    interceptor = EventInterceptor(run_and_keep, notifier=pipeline.notifier)
    interceptor.attach(document)
    try:
        transfer = DataTransfer.from_files(payload)
        document.dispatch_event(DragEvent("dragover", data_transfer=transfer))
        drop = DragEvent("drop", data_transfer=transfer)
        document.dispatch_event(drop)
        await interceptor.wait_idle()
    finally:
        interceptor.detach()

    return drop, reports, bool(host_handled)


@click.group()
@click.version_option(version=__version__, prog_name="pdf-drop")
def cli():
    """PDF Drop — insert converted PDF pages into a canvas scene."""
    pass


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--service-url", "-s",
    default=None,
    help="Base URL of the conversion service (env: PDFDROP_SERVICE_URL)",
)
@click.option(
    "--dpi",
    default=None,
    type=int,
    help="Rasterization resolution requested from the service",
)
@click.option(
    "--scene",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Existing scene JSON to insert into",
)
@click.option(
    "--viewport",
    default="1280x800",
    help="Visible canvas size as WIDTHxHEIGHT",
)
@click.option(
    "--output", "-o",
    default=None,
    help="Where to write the resulting scene (default: <pdf>.excalidraw)",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only the JSON report to stdout (for programmatic use)",
)
def drop(
    pdf_path: str,
    service_url: str,
    dpi: int,
    scene: str,
    viewport: str,
    output: str,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Drop a PDF onto a scene and insert its converted pages."""

    if json_output:
        log_level = "ERROR"

    config = PipelineConfig.from_env(
        service_url=service_url,
        dpi=dpi,
        log_level=log_level,
        log_file=log_file,
    )

    view = _parse_viewport(viewport)
    if scene:
        with open(scene, "r", encoding="utf-8") as f:
            host = InMemoryHost.from_scene_dict(json.load(f), viewport=view)
    else:
        host = InMemoryHost(viewport=view)

    payload = _load_payload(pdf_path)
    notifier = CollectingNotifier()
    pipeline = DropPipeline(host, notifier, config)

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]PDF Drop v{__version__}[/]\n"
                f"[dim]Dropping: {payload.name} → {pipeline.client.url}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        if json_output:
            event, reports, host_handled = asyncio.run(simulate_drop(payload, pipeline))
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                progress.add_task("Converting and inserting pages...", total=None)
                event, reports, host_handled = asyncio.run(
                    simulate_drop(payload, pipeline)
                )
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if config.log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)

    if not reports:
        message = (
            f"{payload.name} is not a PDF ({payload.mime_type}); "
            "the drop was left to the host"
        )
        if json_output:
            print(json.dumps({"intercepted": False, "message": message}))
        else:
            console.print(f"[yellow]{message}[/]")
        sys.exit(1)

    report = reports[0]
    output_path = Path(output or Path(pdf_path).with_suffix(".excalidraw"))
    if report.status == PipelineStatus.COMPLETED:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(host.to_scene_dict(), f, indent=2, ensure_ascii=False)

    if json_output:
        data = report.model_dump(mode="json")
        data["intercepted"] = event.suppressed and not host_handled
        data["scene_path"] = (
            str(output_path) if report.status == PipelineStatus.COMPLETED else None
        )
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        _display_report(report, notifier.messages, output_path)

    sys.exit(0 if report.status == PipelineStatus.COMPLETED else 1)


@cli.command()
@click.argument("archive_path", type=click.Path(exists=True, dir_okay=False))
def pages(archive_path: str):
    """List a converter archive's pages in insertion order."""

    table = Table(title="Archive Pages", border_style="cyan")
    table.add_column("#", justify="right")
    table.add_column("Entry", style="bold")
    table.add_column("Page", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Pixels", justify="right")

    try:
        with open_archive(Path(archive_path).read_bytes()) as archive:
            entries = ArchiveReader().list_pages(archive)
            for position, entry in enumerate(entries, start=1):
                table.add_row(str(position), entry.name, str(entry.index),
                              *_describe_page(entry))
    except zipfile.BadZipFile as e:
        console.print(f"[red]Error:[/] not a ZIP archive: {e}")
        sys.exit(1)
    except EmptyArchiveError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    console.print()
    console.print(table)
    console.print()


def _describe_page(entry: PageEntry) -> tuple[str, str]:
    """Size and pixel columns for one archive page."""
    try:
        content = entry.read()
    except (zipfile.BadZipFile, zlib.error, OSError) as e:
        console.print(f"[yellow]Warning:[/] {entry.name} is unreadable: {e}")
        return "[red]unreadable[/]", "-"
    try:
        width, height = decode_dimensions(content)
        pixels = f"{width}x{height}"
    except (OSError, SyntaxError, ValueError):
        pixels = "[red]undecodable[/]"
    return f"{len(content) / 1024:.1f} KB", pixels


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
def info(pdf_path: str):
    """Display how a file would be treated when dropped."""

    payload = _load_payload(pdf_path)
    event = DragEvent("drop", data_transfer=DataTransfer.from_files(payload))
    intercepted = find_pdf(event) is not None

    table = Table(title="Drop Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("File", payload.name)
    table.add_row("Size", f"{payload.size / 1024 / 1024:.2f} MB")
    table.add_row("Mime Type", payload.mime_type)
    table.add_row(
        "Handled By",
        "[green]pdf-drop[/]" if intercepted else "[yellow]host[/]",
    )

    console.print()
    console.print(table)
    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_report(report: InsertionReport, messages: list[str], output_path: Path):
    """Display a pipeline report as a rich table."""
    table = Table(title="Drop Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    status_style = "green" if report.status == PipelineStatus.COMPLETED else "red"
    table.add_row("Source", report.source_name)
    table.add_row("Status", f"[{status_style}]{report.status.value}[/]")
    table.add_row("Pages Found", str(report.pages_found))
    table.add_row("Inserted", str(report.inserted_count))
    table.add_row("Failed", str(report.failed_count))
    console.print(table)
    console.print()

    if report.failures:
        failures = Table(title="Skipped Pages", border_style="yellow")
        failures.add_column("Page", justify="right")
        failures.add_column("Entry", style="bold")
        failures.add_column("Reason")
        for failure in report.failures:
            failures.add_row(str(failure.index), failure.name, failure.reason)
        console.print(failures)
        console.print()

    for message in messages:
        console.print(f"[red]✗[/] {message}")

    if report.status == PipelineStatus.COMPLETED:
        console.print(f"[dim]Scene written to: {output_path}[/]")
    console.print()


# ─── Entry point (for python -m pdfdrop.cli) ──────────────────────────────────


if __name__ == "__main__":
    cli()

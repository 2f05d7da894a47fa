"""Inspection commands: image properties and the format capability table."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..capabilities import capability_for
from ..errors import ShrinkLabError
from ..formats import ImageFormat
from ..inspector import inspect
from ..io import read_blob
from .utils import format_bytes, handle_generic_error


@click.command("inspect")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output properties in JSON format")
def inspect_image(image: Path, output_json: bool) -> None:
    """Show format, size, frames, DPI and color layout of IMAGE.

    Examples:

        shrinklab inspect photo.jpg

        shrinklab inspect animation.gif --json
    """
    try:
        properties = inspect(read_blob(image))
    except (ShrinkLabError, OSError) as e:
        handle_generic_error("Inspect", e)
        return

    if output_json:
        click.echo(json.dumps(properties.to_dict(), indent=2))
        return

    durations = properties.frame_durations
    if len(durations) > 6:
        timing = ", ".join(f"{d:g}" for d in durations[:6]) + f", … ({len(durations)} total)"
    else:
        timing = ", ".join(f"{d:g}" for d in durations)

    table = Table(title=f"🖼️  {image.name}", show_header=True, header_style="bold magenta")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value")

    table.add_row("Format", properties.format.value)
    table.add_row("Size", f"{format_bytes(properties.byte_size)} ({properties.byte_size:,} bytes)")
    table.add_row("Dimensions", f"{properties.width} × {properties.height}")
    table.add_row("Frames", str(properties.frame_count))
    table.add_row("Frame durations (ms)", timing)
    table.add_row("DPI", "-" if properties.dpi is None else "{:g} × {:g}".format(*properties.dpi))
    table.add_row("Alpha", "yes" if properties.has_alpha else "no")
    table.add_row("Color layout", properties.color_layout.value)
    table.add_row("Orientation", "-" if properties.orientation is None else str(properties.orientation))
    table.add_row("SHA-256", f"[dim]{properties.sha256}[/dim]")

    Console().print(table)


@click.command("formats")
def list_formats() -> None:
    """Show which operations each container format supports."""
    table = Table(title="📦 Format capabilities", show_header=True, header_style="bold magenta")
    table.add_column("Format", style="cyan", no_wrap=True)
    for column in ("Quality", "Frame sampling", "DPI", "Write", "Color layout"):
        table.add_column(column, justify="center")

    def mark(flag: bool) -> str:
        return "[green]✅[/green]" if flag else "[red]❌[/red]"

    for fmt in ImageFormat:
        if fmt is ImageFormat.UNKNOWN:
            continue
        capability = capability_for(fmt)
        table.add_row(
            fmt.value,
            mark(capability.supports_quality),
            mark(capability.supports_frame_sampling),
            mark(capability.supports_dpi),
            mark(capability.supports_write),
            mark(capability.supports_color_layout),
        )

    Console().print(table)

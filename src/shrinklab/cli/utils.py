"""Shared utilities for CLI commands."""

import sys
from collections.abc import Callable
from pathlib import Path

import click

from ..blob import ImageBlob
from ..errors import ShrinkLabError
from ..formats import ImageFormat
from ..io import default_output_path, read_blob, write_blob


def handle_generic_error(command_name: str, error: Exception) -> None:
    """Handle generic command errors with consistent formatting."""
    click.echo(f"❌ {command_name} failed: {error}", err=True)
    sys.exit(1)


def parse_format(ctx: click.Context, param: click.Parameter, value: str | None) -> ImageFormat | None:
    """Click callback turning ``jpg``/``png``/``heif``... into an ImageFormat."""
    if value is None:
        return None
    try:
        return ImageFormat.from_name(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def parse_dpi(ctx: click.Context, param: click.Parameter, value: str | None) -> tuple[float, float] | None:
    """Click callback accepting ``300`` or ``300x200``."""
    if value is None:
        return None
    parts = value.lower().split("x")
    try:
        numbers = [float(part) for part in parts]
    except ValueError:
        raise click.BadParameter(f"Expected N or NxM, got {value!r}") from None
    if len(numbers) == 1:
        return (numbers[0], numbers[0])
    if len(numbers) == 2:
        return (numbers[0], numbers[1])
    raise click.BadParameter(f"Expected N or NxM, got {value!r}")


def format_bytes(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    if size >= 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size} B"


def run_transform(
    command_name: str,
    input_path: Path,
    output: Path | None,
    suffix: str,
    transform: Callable[[ImageBlob], ImageBlob],
) -> None:
    """Read ``input_path``, apply ``transform`` and write the result atomically."""
    try:
        blob = read_blob(input_path)
        result = transform(blob)

        fmt = result.format if result.format is not ImageFormat.UNKNOWN else None
        target = output or default_output_path(input_path, suffix, fmt)
        write_blob(result, target)
    except (ShrinkLabError, OSError) as e:
        handle_generic_error(command_name, e)
        return

    if result is blob:
        click.echo(f"➖ {input_path.name}: already within limits, copied to {target}")
    else:
        click.echo(
            f"✅ {input_path.name}: {format_bytes(len(blob))} → "
            f"{format_bytes(len(result))} ({result.format.value}) → {target}"
        )

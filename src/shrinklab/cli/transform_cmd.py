"""Commands that rewrite an image file."""

from pathlib import Path

import click

from .. import operations
from ..builder import build
from ..color_layout import CANONICAL_LAYOUTS
from ..formats import ImageFormat
from .utils import parse_dpi, parse_format, run_transform

_INPUT = click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
_OUTPUT = click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: next to IMAGE with a suffix)",
)


@click.command("compress")
@_INPUT
@click.option("--max-bytes", type=int, default=None, help="Byte budget for the output")
@click.option("--max-kb", type=float, default=None, help="Byte budget in kilobytes (1 KB = 1024 bytes)")
@click.option("--to", "target", callback=parse_format, default=None, help="Also convert to this format")
@click.option("--quality", type=float, default=None, help="Fixed quality (0.0-1.0) instead of a search")
@click.option("--sample", "sample_count", type=int, default=None, help="Fixed frame sampling stride for GIFs")
@_OUTPUT
def compress(
    image: Path,
    max_bytes: int | None,
    max_kb: float | None,
    target: ImageFormat | None,
    quality: float | None,
    sample_count: int | None,
    output: Path | None,
) -> None:
    """Shrink IMAGE until it fits into a byte budget.

    Tries DPI normalization, quality, frame sampling and finally resizing,
    stopping at the first result that fits.

    Examples:

        shrinklab compress photo.jpg --max-kb 200

        shrinklab compress screenshot.png --max-bytes 500000 --to jpg
    """
    if (max_bytes is None) == (max_kb is None):
        raise click.UsageError("Pass exactly one of --max-bytes or --max-kb")
    budget = max_bytes if max_bytes is not None else int(max_kb * 1024)

    def transform(blob):
        if target is None and quality is None and sample_count is None:
            return operations.compress_to_byte_budget(blob, budget)

        builder = build(blob)
        if target is not None:
            builder = builder.set_format(target)
        if quality is not None:
            builder = builder.set_quality(quality)
        if sample_count is not None:
            builder = builder.set_sample_count(sample_count)
        return builder.set_byte_budget(budget).finalize()

    run_transform("Compress", image, output, "compressed", transform)


@click.command("resize")
@_INPUT
@click.option("--longest-side", "-l", type=float, required=True, help="Maximum width/height in pixels")
@_OUTPUT
def resize(image: Path, longest_side: float, output: Path | None) -> None:
    """Scale IMAGE down so its longest side fits, keeping the aspect ratio."""
    run_transform(
        "Resize",
        image,
        output,
        "resized",
        lambda blob: operations.set_longest_side(blob, longest_side),
    )


@click.command("quality")
@_INPUT
@click.argument("value", type=float)
@_OUTPUT
def quality(image: Path, value: float, output: Path | None) -> None:
    """Re-encode a JPEG/HEIC IMAGE at quality VALUE (0.0-1.0)."""
    run_transform("Quality", image, output, "q", lambda blob: operations.set_quality(blob, value))


@click.command("sample")
@_INPUT
@click.argument("stride", type=int)
@_OUTPUT
def sample(image: Path, stride: int, output: Path | None) -> None:
    """Keep one GIF frame out of every STRIDE, merging frame durations."""
    run_transform(
        "Sample", image, output, "sampled", lambda blob: operations.set_frame_sampling(blob, stride)
    )


@click.command("dpi")
@_INPUT
@click.argument("value", callback=parse_dpi)
@_OUTPUT
def dpi(image: Path, value: tuple[float, float], output: Path | None) -> None:
    """Rewrite the DPI tag of a JPEG/PNG IMAGE (VALUE is N or NxM)."""
    run_transform("DPI", image, output, "dpi", lambda blob: operations.set_dpi(blob, value))


@click.command("convert")
@_INPUT
@click.option("--to", "target", callback=parse_format, required=True, help="Target format (jpg, png, gif, heic, webp)")
@_OUTPUT
def convert(image: Path, target: ImageFormat, output: Path | None) -> None:
    """Re-encode IMAGE into another container format."""
    run_transform(
        "Convert",
        image,
        output,
        "converted",
        lambda blob: operations.change_container_format(blob, target),
    )


@click.command("color")
@_INPUT
@click.option(
    "--layout",
    required=True,
    help="Target layout: " + ", ".join(layout.value for layout in CANONICAL_LAYOUTS),
)
@_OUTPUT
def color(image: Path, layout: str, output: Path | None) -> None:
    """Re-render a still JPEG/HEIC/PNG IMAGE through a canonical color layout."""
    run_transform(
        "Color", image, output, layout.lower(), lambda blob: operations.change_color_layout(blob, layout)
    )

"""CLI module for ShrinkLab commands.

Commands live in separate modules and are registered on the ``main`` group
here.
"""

import click

from .. import __version__
from ..io import setup_logging
from .inspect_cmd import inspect_image, list_formats
from .transform_cmd import color, compress, convert, dpi, quality, resize, sample


@click.group()
@click.version_option(version=__version__, prog_name="shrinklab")
@click.option("--verbose", "-v", is_flag=True, help="Log every trial encode")
def main(verbose: bool) -> None:
    """🗜️ ShrinkLab — fit images into byte, pixel and quality budgets."""
    if verbose:
        setup_logging(log_level="DEBUG")


main.add_command(inspect_image)
main.add_command(list_formats)
main.add_command(compress)
main.add_command(resize)
main.add_command(quality)
main.add_command(sample)
main.add_command(dpi)
main.add_command(convert)
main.add_command(color)

__all__ = [
    "color",
    "compress",
    "convert",
    "dpi",
    "inspect_image",
    "list_formats",
    "main",
    "quality",
    "resize",
    "sample",
]

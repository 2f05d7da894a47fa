"""One-shot image operations.

Every function takes raw bytes or an :class:`ImageBlob`, never modifies it, and
either returns a blob or raises a :class:`ShrinkLabError`. Functions that have
nothing to do return the input blob instance itself.
"""

import logging

from . import inspector
from .backend import CodecBackend
from .blob import ImageBlob, as_blob
from .builder import build
from .capabilities import supports_dpi, supports_write
from .color_layout import ColorLayout
from .config import CompressionConfig
from .errors import IllegalArgumentError, UnsupportedFormatError
from .formats import ImageFormat
from .pillow_backend import get_default_backend

logger = logging.getLogger(__name__)

BlobLike = ImageBlob | bytes


def _require_known_format(blob: ImageBlob) -> None:
    if blob.format is ImageFormat.UNKNOWN:
        raise UnsupportedFormatError("Unrecognized image format", format_type=blob.format)


def change_container_format(
    blob: BlobLike,
    target: ImageFormat,
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Re-encode ``blob`` into another container format.

    Raises:
        UnsupportedFormatError: If ``target`` is not write-capable
    """
    return build(blob, backend, config).set_format(target).finalize()


def set_quality(
    blob: BlobLike,
    quality: float,
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Re-encode a lossy image at ``quality`` (0.0 - 1.0)."""
    return build(blob, backend, config).set_quality(quality).finalize()


def set_longest_side(
    blob: BlobLike,
    limit: float,
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Scale ``blob`` down so its longest side is at most ``limit`` pixels.

    Aspect ratio is preserved and animated images keep their frame timing.
    Returns the input unchanged when it is already small enough.
    """
    if not limit > 0:
        raise IllegalArgumentError("longest_side", limit, "must be positive")

    blob = as_blob(blob)
    _require_known_format(blob)
    backend = backend or get_default_backend()
    if inspector.longest_side(blob, backend) <= limit:
        return blob
    return build(blob, backend, config).set_longest_side(limit).finalize()


def set_frame_sampling(
    blob: BlobLike,
    sample_count: int,
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Keep one frame out of every ``sample_count``, merging their display times."""
    return build(blob, backend, config).set_sample_count(sample_count).finalize()


def set_dpi(
    blob: BlobLike,
    dpi: tuple[float, float],
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Rewrite the DPI tag without touching pixels.

    Returns the input unchanged when it has no DPI metadata or already
    carries ``dpi``.
    """
    blob = as_blob(blob)
    builder = build(blob, backend, config)
    configured = builder.set_dpi(dpi)
    if configured is builder:
        logger.debug(f"DPI of {blob!r} left unchanged")
        return blob
    return configured.finalize()


def compress_to_byte_budget(
    blob: BlobLike,
    max_bytes: int,
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Shrink ``blob`` until it is at most ``max_bytes`` long.

    Raises:
        IllegalArgumentError: If ``max_bytes`` is not positive
        BudgetExhaustedError: If the budget cannot be reached
    """
    if not max_bytes > 0:
        raise IllegalArgumentError("max_bytes", max_bytes, "must be positive")

    blob = as_blob(blob)
    _require_known_format(blob)
    if len(blob) <= max_bytes:
        return blob
    return build(blob, backend, config).set_byte_budget(max_bytes).finalize()


def change_color_layout(
    blob: BlobLike,
    layout: "ColorLayout | str",
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBlob:
    """Re-render a still JPEG/HEIC/PNG image through a canonical color layout."""
    return build(blob, backend, config).set_color_layout(layout).finalize()


# ---------------------------------------------------------------------------
# Inspection passthroughs
# ---------------------------------------------------------------------------


def image_format(blob: BlobLike) -> ImageFormat:
    return as_blob(blob).format


def image_dimensions(blob: BlobLike, backend: CodecBackend | None = None) -> tuple[int, int]:
    return inspector.image_dimensions(blob, backend)


def frame_count(blob: BlobLike, backend: CodecBackend | None = None) -> int:
    return inspector.frame_count(blob, backend)


def frame_durations(blob: BlobLike, backend: CodecBackend | None = None) -> list[float]:
    return inspector.frame_durations(blob, backend)


def image_dpi(blob: BlobLike, backend: CodecBackend | None = None) -> tuple[float, float] | None:
    return inspector.image_dpi(blob, backend)


def has_alpha(blob: BlobLike, backend: CodecBackend | None = None) -> bool:
    return inspector.has_alpha(blob, backend)


def color_layout(blob: BlobLike, backend: CodecBackend | None = None) -> ColorLayout:
    return inspector.color_layout(blob, backend)


def orientation(blob: BlobLike, backend: CodecBackend | None = None) -> int | None:
    return inspector.orientation(blob, backend)


def is_write_supported(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return supports_write(fmt, backend)


def is_dpi_supported(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return supports_dpi(fmt, backend)


__all__ = [
    "change_color_layout",
    "change_container_format",
    "color_layout",
    "compress_to_byte_budget",
    "frame_count",
    "frame_durations",
    "has_alpha",
    "image_dimensions",
    "image_dpi",
    "image_format",
    "is_dpi_supported",
    "is_write_supported",
    "orientation",
    "set_dpi",
    "set_frame_sampling",
    "set_longest_side",
    "set_quality",
]

"""Read-only image properties, delegated to the codec backend.

Every query decodes the blob afresh; nothing is cached between calls.
Undecodable input raises ``CodecError`` tagged ``SOURCE_MISSING`` instead of
returning zero values.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass

from .backend import CodecBackend, SourceHandle
from .blob import ImageBlob, as_blob
from .color_layout import ColorLayout, classify_layout
from .errors import CodecStage, codec_stage
from .formats import ImageFormat
from .pillow_backend import get_default_backend

logger = logging.getLogger(__name__)


@dataclass
class ImageProperties:
    """Everything the inspector knows about one image blob."""

    format: ImageFormat
    byte_size: int
    sha256: str
    width: int
    height: int
    frame_count: int
    frame_durations: list[float]
    dpi: tuple[float, float] | None
    has_alpha: bool
    color_layout: ColorLayout
    orientation: int | None = None

    @property
    def longest_side(self) -> int:
        return max(self.width, self.height)

    def to_dict(self) -> dict:
        """JSON-friendly representation (enums as their string values)."""
        data = asdict(self)
        data["format"] = self.format.value
        data["color_layout"] = self.color_layout.value
        data["dpi"] = list(self.dpi) if self.dpi else None
        data["longest_side"] = self.longest_side
        return data


@contextmanager
def open_source(blob: ImageBlob, backend: CodecBackend) -> Iterator[SourceHandle]:
    """Decode ``blob`` for the duration of the ``with`` block."""
    with codec_stage(
        CodecStage.SOURCE_MISSING, "decode image source", format_type=blob.format, logger=logger
    ):
        source = backend.decode(blob.data)
    with source:
        yield source


def _durations(backend: CodecBackend, source: SourceHandle) -> list[float]:
    return [backend.frame_duration(source, i) for i in range(backend.frame_count(source))]


def _layout(backend: CodecBackend, source: SourceHandle) -> ColorLayout:
    with codec_stage(CodecStage.FRAME_MISSING, "decode frame", index=0, logger=logger):
        frame = backend.decode_frame(source, 0)
    return classify_layout(frame.layout)


def image_dimensions(blob, backend: CodecBackend | None = None) -> tuple[int, int]:
    """``(width, height)`` in pixels."""
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return backend.pixel_dimensions(source)


def longest_side(blob, backend: CodecBackend | None = None) -> int:
    return max(image_dimensions(blob, backend))


def frame_count(blob, backend: CodecBackend | None = None) -> int:
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return backend.frame_count(source)


def frame_durations(blob, backend: CodecBackend | None = None) -> list[float]:
    """Per-frame display times in milliseconds, in playback order."""
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return _durations(backend, source)


def image_dpi(blob, backend: CodecBackend | None = None) -> tuple[float, float] | None:
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return backend.dpi(source)


def has_alpha(blob, backend: CodecBackend | None = None) -> bool:
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return backend.alpha_present(source)


def orientation(blob, backend: CodecBackend | None = None) -> int | None:
    """EXIF orientation (1-8), or ``None`` when the image carries none."""
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return backend.orientation(source)


def color_layout(blob, backend: CodecBackend | None = None) -> ColorLayout:
    """Classify the first decoded frame against the canonical color layouts."""
    backend = backend or get_default_backend()
    with open_source(as_blob(blob), backend) as source:
        return _layout(backend, source)


def inspect(blob, backend: CodecBackend | None = None) -> ImageProperties:
    """Collect all properties of ``blob`` with a single decode."""
    backend = backend or get_default_backend()
    blob = as_blob(blob)
    with open_source(blob, backend) as source:
        width, height = backend.pixel_dimensions(source)
        properties = ImageProperties(
            format=blob.format,
            byte_size=len(blob),
            sha256=blob.sha256,
            width=width,
            height=height,
            frame_count=backend.frame_count(source),
            frame_durations=_durations(backend, source),
            dpi=backend.dpi(source),
            has_alpha=backend.alpha_present(source),
            color_layout=_layout(backend, source),
            orientation=backend.orientation(source),
        )

    logger.debug(
        f"Inspected {properties.format.value} {width}x{height}, "
        f"{properties.frame_count} frame(s), {properties.byte_size} bytes"
    )
    return properties

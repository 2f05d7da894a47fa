"""Immutable builder that accumulates compression settings for one image.

Usage:
    result = (
        build(blob)
        .set_longest_side(1024)
        .set_quality(0.8)
        .finalize()
    )

Each setter validates its argument immediately and returns a new builder; the
receiver is never modified. Only one compression strategy may be active: the
first successful ``set_longest_side`` / ``set_byte_budget`` wins and later
calls become no-ops.
"""

import logging
from dataclasses import dataclass, field, replace

from .backend import CodecBackend, EncodeFrame, FrameProperties, SourceHandle
from .blob import ImageBlob, as_blob
from .capabilities import (
    supports_color_layout,
    supports_dpi,
    supports_frame_sampling,
    supports_quality,
    supports_write,
)
from .color_layout import ColorLayout, classify_layout, template_for
from .config import DEFAULT_COMPRESSION_CONFIG, CompressionConfig
from .errors import (
    CodecError,
    CodecStage,
    EncoderMissingError,
    IllegalArgumentError,
    UnsupportedFormatError,
    codec_stage,
    handle_error,
)
from .formats import ImageFormat
from .frame_merge import merge_frame_durations
from .inspector import image_dpi, longest_side, open_source
from .pillow_backend import get_default_backend
from .search import ByteBudgetSearch

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ByteBudget:
    """Compress until the encoded size is at most ``max_bytes``."""

    max_bytes: int


@dataclass(frozen=True, slots=True)
class FixedWidth:
    """Resize so the longest side is at most ``longest_side`` pixels."""

    longest_side: float


CompressStrategy = ByteBudget | FixedWidth | None


def _dpi_equal(a: tuple[float, float], b: tuple[float, float], tolerance: float) -> bool:
    return abs(a[0] - b[0]) <= tolerance and abs(a[1] - b[1]) <= tolerance


@dataclass(frozen=True)
class ImageBuilder:
    """Validated, immutable compression settings for one source blob."""

    blob: ImageBlob
    input_format: ImageFormat
    output_format: ImageFormat
    quality: float | None = None
    dpi: tuple[float, float] | None = None
    color_layout: ColorLayout | None = None
    compress: CompressStrategy = None
    sample_count: int | None = None
    backend: CodecBackend = field(default_factory=get_default_backend, repr=False, compare=False)
    config: CompressionConfig = field(
        default_factory=lambda: DEFAULT_COMPRESSION_CONFIG, repr=False, compare=False
    )

    @classmethod
    def from_blob(
        cls,
        blob: "ImageBlob | bytes",
        backend: CodecBackend | None = None,
        config: CompressionConfig | None = None,
    ) -> "ImageBuilder":
        """Start a builder for ``blob``; input and output format are the sniffed format.

        Raises:
            UnsupportedFormatError: If the container format is not recognised
        """
        blob = as_blob(blob)
        fmt = blob.format
        if fmt is ImageFormat.UNKNOWN:
            raise UnsupportedFormatError("Unrecognized image format", format_type=fmt)
        return cls(
            blob=blob,
            input_format=fmt,
            output_format=fmt,
            backend=backend or get_default_backend(),
            config=config or DEFAULT_COMPRESSION_CONFIG,
        )

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------
    def set_longest_side(self, limit: float) -> "ImageBuilder":
        if not limit > 0:
            raise IllegalArgumentError("longest_side", limit, "must be positive")
        if self.compress is not None:
            return self
        if longest_side(self.blob, self.backend) <= limit:
            return self
        return replace(self, compress=FixedWidth(float(limit)))

    def set_quality(self, quality: float) -> "ImageBuilder":
        if not supports_quality(self.input_format, self.backend):
            raise UnsupportedFormatError(
                f"{self.input_format.value} does not support quality compression",
                format_type=self.input_format,
            )
        if not 0.0 <= quality <= 1.0:
            raise IllegalArgumentError("quality", quality, "must be between 0.0 and 1.0")
        return replace(self, quality=float(quality))

    def set_sample_count(self, sample_count: int) -> "ImageBuilder":
        if not supports_frame_sampling(self.input_format, self.backend):
            raise UnsupportedFormatError(
                f"{self.input_format.value} does not support frame sampling",
                format_type=self.input_format,
            )
        if not sample_count > 0:
            raise IllegalArgumentError("sample_count", sample_count, "must be positive")
        return replace(self, sample_count=int(sample_count))

    def set_format(self, fmt: ImageFormat) -> "ImageBuilder":
        if not supports_write(fmt, self.backend):
            raise UnsupportedFormatError(f"Cannot write {fmt.value} images", format_type=fmt)
        return replace(self, output_format=fmt)

    def set_dpi(self, dpi: tuple[float, float]) -> "ImageBuilder":
        """Request a new DPI tag.

        A no-op when the source carries no DPI metadata or already has ``dpi``.
        """
        if not supports_dpi(self.input_format, self.backend):
            raise UnsupportedFormatError(
                f"{self.input_format.value} does not carry DPI metadata",
                format_type=self.input_format,
            )
        if len(dpi) != 2 or not (dpi[0] > 0 and dpi[1] > 0):
            raise IllegalArgumentError("dpi", dpi, "must be two positive values")

        current = image_dpi(self.blob, self.backend)
        if current is None or _dpi_equal(current, dpi, self.config.DPI_TOLERANCE):
            return self
        return replace(self, dpi=(float(dpi[0]), float(dpi[1])))

    def set_byte_budget(self, max_bytes: int) -> "ImageBuilder":
        if not max_bytes > 0:
            raise IllegalArgumentError("max_bytes", max_bytes, "must be positive")
        if self.compress is not None or len(self.blob) <= max_bytes:
            return self
        return replace(self, compress=ByteBudget(int(max_bytes)))

    def set_color_layout(self, layout: "ColorLayout | str") -> "ImageBuilder":
        """Re-render the image through one of the canonical color layouts.

        Raises:
            UnsupportedFormatError: For containers other than JPEG/HEIC/PNG,
                and for animated images
            UnsupportedColorLayoutError: If ``layout`` is not canonical
        """
        if not supports_color_layout(self.input_format, self.backend):
            raise UnsupportedFormatError(
                f"{self.input_format.value} does not support color layout changes",
                format_type=self.input_format,
            )
        resolved = classify_layout(template_for(layout))

        with open_source(self.blob, self.backend) as source:
            frames = self.backend.frame_count(source)
        if frames > 1:
            raise UnsupportedFormatError(
                f"Color layout changes need a still image, got {frames} frames",
                format_type=self.input_format,
            )
        return replace(self, color_layout=resolved)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def finalize(self) -> ImageBlob:
        """Encode the configured image into a new blob.

        Raises:
            UnsupportedFormatError: If the output format cannot be written
            CodecError: If the backend fails at any stage
            BudgetExhaustedError: If a byte budget cannot be reached
        """
        if not supports_write(self.output_format, self.backend):
            raise UnsupportedFormatError(
                f"Cannot write {self.output_format.value} images",
                format_type=self.output_format,
            )

        if isinstance(self.compress, ByteBudget):
            return ByteBudgetSearch(self).run()
        if isinstance(self.compress, FixedWidth):
            return self.encode(max_dimension=self.compress.longest_side)
        return self.encode()

    def encode(self, max_dimension: float | None = None) -> ImageBlob:
        """Run exactly one backend encode with the current settings."""
        with open_source(self.blob, self.backend) as source:
            frames = self._collect_frames(source, max_dimension)
            data = self._encode_frames(frames)

        logger.debug(
            f"Encoded {self.input_format.value} → {self.output_format.value}: "
            f"{len(self.blob)} → {len(data)} bytes "
            f"(quality={self.quality}, frames={len(frames)}, max_dimension={max_dimension})"
        )
        return ImageBlob(data)

    def _frame_properties(self) -> FrameProperties:
        layout = template_for(self.color_layout) if self.color_layout is not None else None
        return FrameProperties(quality=self.quality, dpi=self.dpi, layout=layout)

    def _collect_frames(
        self, source: SourceHandle, max_dimension: float | None
    ) -> list[EncodeFrame]:
        backend = self.backend
        properties = self._frame_properties()
        count = backend.frame_count(source)

        if count <= 1:
            return [EncodeFrame(self._frame_pixels(source, 0, max_dimension), properties)]

        durations = [backend.frame_duration(source, i) for i in range(count)]
        kept = merge_frame_durations(durations, self.sample_count or 1, self.config)
        return [
            EncodeFrame(
                self._frame_pixels(source, frame.index, max_dimension),
                replace(properties, duration_ms=frame.duration_ms),
            )
            for frame in kept
        ]

    def _frame_pixels(self, source: SourceHandle, index: int, max_dimension: float | None):
        if max_dimension is None:
            with codec_stage(CodecStage.FRAME_MISSING, "decode frame", index=index, logger=logger):
                return self.backend.decode_frame(source, index).pixels

        with codec_stage(
            CodecStage.THUMBNAIL_MISSING, "create thumbnail", index=index, logger=logger
        ):
            return self.backend.make_thumbnail(
                source, index, max_dimension, preserve_transform=True, force_regenerate=True
            )

    def _encode_frames(self, frames: list[EncodeFrame]) -> bytes:
        with codec_stage(
            CodecStage.FINALIZE_FAILED,
            "encode image",
            format_type=self.output_format,
            logger=logger,
        ):
            try:
                return self.backend.encode(self.output_format, frames)
            except EncoderMissingError as e:
                handle_error(
                    e,
                    "create encoder",
                    CodecError,
                    context={"format": self.output_format.value},
                    logger=logger,
                    stage=CodecStage.DESTINATION_MISSING,
                    format_type=self.output_format,
                )


def build(
    blob: "ImageBlob | bytes",
    backend: CodecBackend | None = None,
    config: CompressionConfig | None = None,
) -> ImageBuilder:
    """Start a chain of compression settings for ``blob``."""
    return ImageBuilder.from_blob(blob, backend=backend, config=config)

"""Abstract codec backend used by the ShrinkLab orchestrator.

The orchestrator never touches pixels itself: decoding, thumbnailing and
encoding are delegated to a :class:`CodecBackend`. The default implementation
lives in :mod:`shrinklab.pillow_backend`; tests substitute a deterministic
fake to count trial encodes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from .color_layout import BitLayout
from .formats import ImageFormat


class SourceHandle(ABC):
    """An opened, decodable image source.

    Handles are context managers so callers can release backend resources
    deterministically.
    """

    def close(self) -> None:  # pragma: no cover – default is a no-op
        """Release any resources held by the handle."""

    def __enter__(self) -> SourceHandle:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@dataclass(frozen=True, slots=True)
class DecodedFrame:
    """Pixels of one frame plus the bit layout they were decoded into."""

    pixels: Any
    layout: BitLayout


@dataclass(frozen=True, slots=True)
class FrameProperties:
    """Per-frame encoder settings. ``None`` means "backend default"."""

    duration_ms: float | None = None
    quality: float | None = None
    dpi: tuple[float, float] | None = None
    layout: BitLayout | None = None


@dataclass(frozen=True, slots=True)
class EncodeFrame:
    """One entry of the frame set handed to :meth:`CodecBackend.encode`."""

    pixels: Any
    properties: FrameProperties = FrameProperties()


@dataclass(frozen=True, slots=True)
class ContainerProperties:
    """Container-level encoder settings."""

    loop: int | None = None


class CodecBackend(ABC):
    """Decode / thumbnail / encode primitives required by the orchestrator.

    Implementations must be stateless between calls: the orchestrator relies
    on every probe being an independent invocation, and may call the backend
    from several threads for independent blobs.
    """

    #: Human-readable name, e.g. ``"pillow"``
    NAME: str = "codec-backend"

    # ------------------------------------------------------------------
    # Source inspection
    # ------------------------------------------------------------------
    @abstractmethod
    def decode(self, data: bytes) -> SourceHandle:
        """Open ``data`` as an image source.

        Raises:
            NotDecodableError: If the bytes cannot be decoded
        """

    @abstractmethod
    def frame_count(self, source: SourceHandle) -> int:
        """Number of frames in the source (1 for still images)."""

    @abstractmethod
    def frame_duration(self, source: SourceHandle, index: int) -> float:
        """Display time of frame ``index`` in milliseconds.

        Prefer the unclamped delay, else the clamped delay, else 100 ms.
        """

    @abstractmethod
    def pixel_dimensions(self, source: SourceHandle) -> tuple[int, int]:
        """``(width, height)`` of the first frame."""

    @abstractmethod
    def dpi(self, source: SourceHandle) -> tuple[float, float] | None:
        """``(x, y)`` DPI metadata, or ``None`` if the source carries none."""

    @abstractmethod
    def alpha_present(self, source: SourceHandle) -> bool:
        """Whether the source has an alpha channel or transparency."""

    @abstractmethod
    def orientation(self, source: SourceHandle) -> int | None:
        """EXIF orientation (1-8) of the first frame, or ``None`` if untagged."""

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------
    @abstractmethod
    def decode_frame(self, source: SourceHandle, index: int) -> DecodedFrame:
        """Decode frame ``index`` at full size."""

    @abstractmethod
    def make_thumbnail(
        self,
        source: SourceHandle,
        index: int,
        max_dimension: float,
        preserve_transform: bool = True,
        force_regenerate: bool = True,
    ) -> Any:
        """Return pixels of frame ``index`` scaled so the longer side is <= ``max_dimension``.

        Aspect ratio is preserved. ``preserve_transform`` applies the source's
        orientation metadata; ``force_regenerate`` ignores embedded thumbnails.
        """

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    @abstractmethod
    def encode(
        self,
        target_format: ImageFormat,
        frames: list[EncodeFrame],
        container: ContainerProperties | None = None,
    ) -> bytes:
        """Encode ``frames`` (in playback order) into ``target_format``.

        Raises:
            EncoderMissingError: If there is no encoder for ``target_format``
            EncodeFailedError: If encoding fails
        """

    @abstractmethod
    def write_capable_formats(self) -> set[ImageFormat]:
        """Formats this backend can currently encode.

        Queried on every capability check, never cached by callers.
        """

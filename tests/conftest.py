"""Shared fixtures: Pillow-generated images and a deterministic fake codec backend."""

import io
import json
from dataclasses import dataclass, field

import numpy as np
import pytest
from PIL import Image

from shrinklab.backend import (
    CodecBackend,
    ContainerProperties,
    DecodedFrame,
    EncodeFrame,
    SourceHandle,
)
from shrinklab.blob import ImageBlob
from shrinklab.color_layout import AlphaInfo, BitLayout
from shrinklab.errors import EncodeFailedError, EncoderMissingError, NotDecodableError
from shrinklab.formats import ImageFormat

# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------
# Fake blobs are a real 16-byte magic prefix (so sniffing works), one JSON
# header line describing the image, then zero padding up to a modelled size:
#
#     size = bytes_per_pixel * width * height * frames * (0.1 + quality)
#
# Non-lossy formats encode as quality 1.0.

_FAKE_PREFIX_LENGTH = 16

_FAKE_PREFIXES = {
    ImageFormat.JPEG: b"\xff\xd8\xff\xe0",
    ImageFormat.PNG: b"\x89PNG\r\n\x1a\n",
    ImageFormat.GIF: b"GIF89a",
    ImageFormat.HEIC: b"\x00\x00\x00\x18ftypheic",
    ImageFormat.WEBP: b"RIFF\x00\x00\x00\x00WEBP",
    ImageFormat.DNG: b"II*\x00",
}


def fake_size(width: int, height: int, frames: int, quality: float, bytes_per_pixel: float = 1.0) -> int:
    return int(bytes_per_pixel * width * height * frames * (0.1 + quality))


def make_fake_blob(
    fmt: ImageFormat,
    width: int,
    height: int,
    durations: list[float] | None = None,
    dpi: tuple[float, float] | None = None,
    quality: float | None = None,
    extra_bytes: int = 0,
    size: int | None = None,
    orientation: int | None = None,
) -> ImageBlob:
    """Build a fake-encoded blob the FakeBackend can decode."""
    durations = durations if durations is not None else [100.0]
    header = {
        "format": fmt.value,
        "width": width,
        "height": height,
        "durations": durations,
        "dpi": list(dpi) if dpi else None,
        "quality": quality,
    }
    if orientation is not None:
        header["orientation"] = orientation
    if size is None:
        effective = quality if quality is not None else 1.0
        size = fake_size(width, height, len(durations), effective) + extra_bytes

    data = _FAKE_PREFIXES[fmt].ljust(_FAKE_PREFIX_LENGTH, b"\x00")
    data += json.dumps(header).encode() + b"\n"
    return ImageBlob(data.ljust(size, b"\x00"))


@dataclass(frozen=True)
class FakePixels:
    width: int
    height: int
    index: int
    quality: float | None
    dpi: tuple[float, float] | None


@dataclass
class EncodeCall:
    """One recorded FakeBackend.encode invocation."""

    target: ImageFormat
    requested_quality: float | None
    quality: float
    width: int
    height: int
    frames: int
    durations: list[float | None]
    dpi: tuple[float, float] | None
    size: int


class FakeSource(SourceHandle):
    def __init__(self, header: dict):
        self.header = header
        self.closed = False

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeBackend(CodecBackend):
    """Deterministic backend with a linear size model and an encode log."""

    NAME = "fake"

    writable: set[ImageFormat] = field(
        default_factory=lambda: {ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.GIF}
    )
    bytes_per_pixel: float = 1.0
    layout: BitLayout = BitLayout(8, 32, AlphaInfo.NONE_SKIP_LAST)
    missing_encoders: set[ImageFormat] = field(default_factory=set)
    fail_encode: bool = False
    fail_decode_frame: bool = False
    fail_thumbnail: bool = False
    calls: list[EncodeCall] = field(default_factory=list)

    def decode(self, data: bytes) -> FakeSource:
        try:
            line = data[_FAKE_PREFIX_LENGTH:].split(b"\n", 1)[0]
            return FakeSource(json.loads(line))
        except ValueError as e:
            raise NotDecodableError("not a fake image", cause=e) from e

    def frame_count(self, source: FakeSource) -> int:
        return len(source.header["durations"])

    def frame_duration(self, source: FakeSource, index: int) -> float:
        return float(source.header["durations"][index])

    def pixel_dimensions(self, source: FakeSource) -> tuple[int, int]:
        return (source.header["width"], source.header["height"])

    def dpi(self, source: FakeSource) -> tuple[float, float] | None:
        dpi = source.header["dpi"]
        return tuple(dpi) if dpi else None

    def alpha_present(self, source: FakeSource) -> bool:
        return False

    def orientation(self, source: FakeSource) -> int | None:
        return source.header.get("orientation")

    def _pixels(self, source: FakeSource, index: int, width: int, height: int) -> FakePixels:
        return FakePixels(width, height, index, source.header["quality"], self.dpi(source))

    def decode_frame(self, source: FakeSource, index: int) -> DecodedFrame:
        if self.fail_decode_frame:
            raise RuntimeError("frame decode exploded")
        width, height = self.pixel_dimensions(source)
        return DecodedFrame(self._pixels(source, index, width, height), self.layout)

    def make_thumbnail(
        self,
        source: FakeSource,
        index: int,
        max_dimension: float,
        preserve_transform: bool = True,
        force_regenerate: bool = True,
    ) -> FakePixels:
        if self.fail_thumbnail:
            raise RuntimeError("thumbnail exploded")
        width, height = self.pixel_dimensions(source)
        scale = min(1.0, max_dimension / max(width, height))
        return self._pixels(
            source, index, max(1, int(width * scale)), max(1, int(height * scale))
        )

    def encode(
        self,
        target_format: ImageFormat,
        frames: list[EncodeFrame],
        container: ContainerProperties | None = None,
    ) -> bytes:
        if target_format not in self.writable or target_format in self.missing_encoders:
            raise EncoderMissingError(f"no fake encoder for {target_format.value}")
        if self.fail_encode:
            raise EncodeFailedError("fake encoder failed")

        first = frames[0]
        requested = first.properties.quality
        quality = requested if requested is not None else first.pixels.quality
        lossy = target_format in (ImageFormat.JPEG, ImageFormat.HEIC, ImageFormat.WEBP)
        effective = quality if (lossy and quality is not None) else 1.0
        dpi = first.properties.dpi or first.pixels.dpi
        durations = [frame.properties.duration_ms for frame in frames]

        size = fake_size(
            first.pixels.width, first.pixels.height, len(frames), effective, self.bytes_per_pixel
        )
        blob = make_fake_blob(
            target_format,
            first.pixels.width,
            first.pixels.height,
            durations=[d if d is not None else 100.0 for d in durations],
            dpi=dpi,
            quality=effective if lossy else None,
            size=size,
        )
        self.calls.append(
            EncodeCall(
                target=target_format,
                requested_quality=requested,
                quality=effective,
                width=first.pixels.width,
                height=first.pixels.height,
                frames=len(frames),
                durations=durations,
                dpi=dpi,
                size=len(blob),
            )
        )
        return blob.data

    def write_capable_formats(self) -> set[ImageFormat]:
        return set(self.writable)


@pytest.fixture
def fake_backend():
    return FakeBackend()


# ---------------------------------------------------------------------------
# Real images (Pillow)
# ---------------------------------------------------------------------------


def _save(image: Image.Image, fmt: str, **params) -> ImageBlob:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return ImageBlob(buffer.getvalue())


def noise_image(width: int, height: int, mode: str = "RGB", seed: int = 0) -> Image.Image:
    """Incompressible test content."""
    channels = len(mode)
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)
    return Image.fromarray(pixels)


def animated_gif(durations: list[int], size: tuple[int, int] = (40, 20)) -> ImageBlob:
    """GIF with one distinct solid color per frame."""
    frames = []
    for i in range(len(durations)):
        value = int(i * 255 / max(len(durations) - 1, 1))
        frames.append(Image.new("RGB", size, (value, 64, 255 - value)))
    return _save(
        frames[0], "GIF", save_all=True, append_images=frames[1:], duration=durations, loop=0
    )


@pytest.fixture
def jpeg_blob() -> ImageBlob:
    """64×48 JPEG at quality 95 tagged 300 DPI."""
    return _save(noise_image(64, 48), "JPEG", quality=95, dpi=(300, 300))


@pytest.fixture
def png_blob() -> ImageBlob:
    """40×30 RGBA PNG tagged 96 DPI."""
    return _save(noise_image(40, 30, mode="RGBA", seed=1), "PNG", dpi=(96, 96))


@pytest.fixture
def plain_png_blob() -> ImageBlob:
    """32×32 RGB PNG without DPI metadata."""
    return _save(noise_image(32, 32, seed=2), "PNG")


@pytest.fixture
def gif_blob() -> ImageBlob:
    """Five-frame animated GIF, 50 ms per frame."""
    return animated_gif([50, 50, 50, 50, 50])


@pytest.fixture
def rotated_jpeg_blob() -> ImageBlob:
    """64×48 JPEG carrying EXIF orientation 6 (rotate 90° clockwise on display)."""
    exif = Image.Exif()
    exif[0x0112] = 6
    return _save(noise_image(64, 48, seed=3), "JPEG", quality=90, exif=exif)

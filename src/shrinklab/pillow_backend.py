"""Pillow implementation of the codec backend.

Engine notes:
- JPEG/PNG/GIF encoders ship with Pillow; WebP depends on how Pillow was built.
- HEIC is read and written through the optional ``pillow-heif`` plugin, which
  registers itself with Pillow when installed.
- Pillow keeps RGB pixels in 4-byte slots, which is reflected in the bit
  layouts reported by :meth:`PillowBackend.decode_frame`.
"""

import io
import logging
from functools import cache
from typing import Any

from PIL import Image, ImageOps

from .backend import (
    CodecBackend,
    ContainerProperties,
    DecodedFrame,
    EncodeFrame,
    SourceHandle,
)
from .color_layout import AlphaInfo, BitLayout, render_layout
from .config import DEFAULT_BACKEND_CONFIG, BackendConfig
from .errors import EncodeFailedError, EncoderMissingError, NotDecodableError
from .formats import ImageFormat

logger = logging.getLogger(__name__)

# Used when a frame carries no delay metadata at all
DEFAULT_FRAME_DURATION_MS = 100.0

_EXIF_ORIENTATION = 0x0112

_SAVE_NAMES = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
    ImageFormat.GIF: "GIF",
    ImageFormat.HEIC: "HEIF",
    ImageFormat.WEBP: "WEBP",
}

_MULTI_FRAME_FORMATS = {ImageFormat.GIF, ImageFormat.PNG, ImageFormat.WEBP}

_ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}

_CONTAINER_MODES = {
    ImageFormat.JPEG: {"RGB", "L", "CMYK"},
    ImageFormat.PNG: {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"},
    ImageFormat.GIF: {"1", "L", "P", "RGB", "RGBA"},
    ImageFormat.HEIC: {"RGB", "RGBA"},
    ImageFormat.WEBP: {"RGB", "RGBA"},
}

_MODE_LAYOUTS = {
    "1": BitLayout(1, 1, AlphaInfo.NONE),
    "L": BitLayout(8, 8, AlphaInfo.NONE),
    "P": BitLayout(8, 8, AlphaInfo.NONE),
    "LA": BitLayout(8, 16, AlphaInfo.LAST),
    "PA": BitLayout(8, 16, AlphaInfo.LAST),
    "La": BitLayout(8, 16, AlphaInfo.PREMULTIPLIED_LAST),
    "RGB": BitLayout(8, 32, AlphaInfo.NONE_SKIP_LAST),
    "RGBX": BitLayout(8, 32, AlphaInfo.NONE_SKIP_LAST),
    "YCbCr": BitLayout(8, 32, AlphaInfo.NONE_SKIP_LAST),
    "RGBA": BitLayout(8, 32, AlphaInfo.LAST),
    "RGBa": BitLayout(8, 32, AlphaInfo.PREMULTIPLIED_LAST),
    "CMYK": BitLayout(8, 32, AlphaInfo.NONE),
    "I;16": BitLayout(16, 16, AlphaInfo.NONE),
    "I": BitLayout(32, 32, AlphaInfo.NONE),
    "F": BitLayout(32, 32, AlphaInfo.NONE, float_components=True),
}

_RESAMPLE_FILTERS = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


@cache
def _register_heif_plugin() -> bool:
    """Register pillow-heif with Pillow once per process, if it is installed."""
    try:
        from pillow_heif import register_heif_opener
    except ImportError:
        logger.debug("pillow-heif not installed; HEIC encoding unavailable")
        return False

    register_heif_opener()
    logger.debug("Registered pillow-heif plugin")
    return True


def layout_for_mode(mode: str) -> BitLayout:
    """Describe how Pillow stores pixels of ``mode`` in memory."""
    layout = _MODE_LAYOUTS.get(mode)
    if layout is not None:
        return layout
    bands = len(Image.getmodebands(mode))
    return BitLayout(8, 8 * bands, AlphaInfo.NONE)


def _quality_value(quality: float) -> int:
    """Map a [0, 1] quality coefficient to Pillow's 1-100 scale."""
    return max(1, min(100, int(round(quality * 100))))


class PillowSource(SourceHandle):
    """A Pillow image opened from an in-memory buffer."""

    def __init__(self, image: Image.Image):
        self.image = image

    def close(self) -> None:
        self.image.close()


class PillowBackend(CodecBackend):
    """Codec backend built on Pillow (+ numpy for color layout rendering)."""

    NAME = "pillow"

    def __init__(self, config: BackendConfig | None = None):
        self.config = config or DEFAULT_BACKEND_CONFIG
        if self.config.ENABLE_HEIF_PLUGIN:
            _register_heif_plugin()

    # ------------------------------------------------------------------
    # Source inspection
    # ------------------------------------------------------------------
    def decode(self, data: bytes) -> PillowSource:
        try:
            image = Image.open(io.BytesIO(data))
        except Exception as e:
            raise NotDecodableError(f"Cannot decode image data: {e}", cause=e) from e
        return PillowSource(image)

    def frame_count(self, source: PillowSource) -> int:
        return int(getattr(source.image, "n_frames", 1))

    def _seek(self, source: PillowSource, index: int) -> Image.Image:
        total = self.frame_count(source)
        if not 0 <= index < total:
            raise IndexError(f"Frame index {index} out of range (0..{total - 1})")
        image = source.image
        if total > 1 or index != image.tell():
            image.seek(index)
        return image

    def frame_duration(self, source: PillowSource, index: int) -> float:
        image = self._seek(source, index)
        # Pillow exposes the authored (unclamped) delay in milliseconds
        duration = image.info.get("duration")
        if duration is None:
            return DEFAULT_FRAME_DURATION_MS
        return float(duration)

    def pixel_dimensions(self, source: PillowSource) -> tuple[int, int]:
        return source.image.size

    def dpi(self, source: PillowSource) -> tuple[float, float] | None:
        image = self._seek(source, 0)
        dpi = image.info.get("dpi")
        if not dpi or len(dpi) != 2:
            return None
        x_dpi, y_dpi = float(dpi[0]), float(dpi[1])
        if x_dpi <= 0 or y_dpi <= 0:
            return None
        return (x_dpi, y_dpi)

    def alpha_present(self, source: PillowSource) -> bool:
        image = self._seek(source, 0)
        return image.mode in _ALPHA_MODES or "transparency" in image.info

    def orientation(self, source: PillowSource) -> int | None:
        image = self._seek(source, 0)
        value = image.getexif().get(_EXIF_ORIENTATION)
        if value is None:
            return None
        value = int(value)
        return value if 1 <= value <= 8 else None

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------
    def decode_frame(self, source: PillowSource, index: int) -> DecodedFrame:
        image = self._seek(source, index)
        image.load()
        # Still images are handed over as-is so JPEG re-encodes can reuse
        # the original quantisation tables.
        pixels = image if self.frame_count(source) == 1 else image.copy()
        return DecodedFrame(pixels=pixels, layout=layout_for_mode(pixels.mode))

    def make_thumbnail(
        self,
        source: PillowSource,
        index: int,
        max_dimension: float,
        preserve_transform: bool = True,
        force_regenerate: bool = True,
    ) -> Image.Image:
        # Pillow never reads embedded thumbnails, so every call regenerates
        # from full-size pixels regardless of force_regenerate.
        frame = self._seek(source, index).copy()
        if frame.mode == "P":
            frame = frame.convert("RGBA")
        if preserve_transform:
            frame = ImageOps.exif_transpose(frame)

        limit = max(1, int(max_dimension))
        frame.thumbnail((limit, limit), _RESAMPLE_FILTERS[self.config.RESAMPLE])
        return frame

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def write_capable_formats(self) -> set[ImageFormat]:
        Image.init()
        return {fmt for fmt, name in _SAVE_NAMES.items() if name in Image.SAVE}

    def encode(
        self,
        target_format: ImageFormat,
        frames: list[EncodeFrame],
        container: ContainerProperties | None = None,
    ) -> bytes:
        save_name = _SAVE_NAMES.get(target_format)
        if save_name is None or target_format not in self.write_capable_formats():
            raise EncoderMissingError(f"No encoder available for {target_format.value}")

        if not frames:
            raise EncodeFailedError("Cannot encode an empty frame set")

        if len(frames) > 1 and target_format not in _MULTI_FRAME_FORMATS:
            logger.debug(
                f"{target_format.value} holds a single frame; dropping {len(frames) - 1} frames"
            )
            frames = frames[:1]

        images = [self._prepare_frame(frame, target_format) for frame in frames]
        params = self._save_params(target_format, frames, images, container)

        buffer = io.BytesIO()
        try:
            if len(images) > 1:
                images[0].save(
                    buffer,
                    format=save_name,
                    save_all=True,
                    append_images=images[1:],
                    **params,
                )
            else:
                images[0].save(buffer, format=save_name, **params)
        except Exception as e:
            raise EncodeFailedError(f"{save_name} encoder failed: {e}", cause=e) from e

        return buffer.getvalue()

    def _prepare_frame(self, frame: EncodeFrame, target_format: ImageFormat) -> Image.Image:
        image = frame.pixels
        if frame.properties.layout is not None:
            image = render_layout(image, frame.properties.layout)

        allowed = _CONTAINER_MODES[target_format]
        if image.mode in allowed:
            return image

        has_alpha = image.mode in _ALPHA_MODES or "transparency" in image.info
        if has_alpha and "RGBA" not in allowed:
            # Flatten transparency onto white for containers without alpha
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background

        return image.convert("RGBA" if has_alpha else "RGB")

    def _save_params(
        self,
        target_format: ImageFormat,
        frames: list[EncodeFrame],
        images: list[Image.Image],
        container: ContainerProperties | None,
    ) -> dict[str, Any]:
        first = frames[0]
        properties = first.properties
        source_info = getattr(first.pixels, "info", {}) or {}
        params: dict[str, Any] = {}

        if target_format in (ImageFormat.JPEG, ImageFormat.HEIC, ImageFormat.WEBP):
            if properties.quality is not None:
                params["quality"] = _quality_value(properties.quality)
            elif target_format is ImageFormat.JPEG and getattr(images[0], "format", None) == "JPEG":
                params["quality"] = "keep"
            else:
                params["quality"] = _quality_value(self.config.DEFAULT_QUALITY)

        if target_format in (ImageFormat.JPEG, ImageFormat.PNG):
            params["optimize"] = True
            dpi = properties.dpi or source_info.get("dpi")
            if dpi:
                params["dpi"] = (float(dpi[0]), float(dpi[1]))

        if target_format in (ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.WEBP):
            exif = source_info.get("exif")
            if exif:
                params["exif"] = exif

        icc_profile = source_info.get("icc_profile")
        if icc_profile and images[0].mode == getattr(first.pixels, "mode", None):
            params["icc_profile"] = icc_profile

        if target_format in _MULTI_FRAME_FORMATS:
            durations = [frame.properties.duration_ms for frame in frames]
            if len(frames) > 1 or durations[0] is not None:
                params["duration"] = [
                    int(round(d if d is not None else DEFAULT_FRAME_DURATION_MS))
                    for d in durations
                ]
                if len(frames) == 1:
                    params["duration"] = params["duration"][0]

            if len(frames) > 1:
                loop = container.loop if container and container.loop is not None else None
                params["loop"] = self.config.GIF_LOOP if loop is None else loop

        if target_format is ImageFormat.GIF and len(frames) > 1:
            params["disposal"] = self.config.GIF_DISPOSAL

        return params


_default_backend: PillowBackend | None = None


def get_default_backend() -> PillowBackend:
    """Return the shared stateless Pillow backend."""
    global _default_backend
    if _default_backend is None:
        _default_backend = PillowBackend()
    return _default_backend

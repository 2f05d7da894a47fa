"""Canonical color layouts and the bit-layout descriptors used to classify frames.

A decoded frame is described by a :class:`BitLayout` (bits per component,
bits per pixel, alpha placement and whether components are floats). Four
canonical layouts are recognised; anything else is ``ColorLayout.UNKNOWN``.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
from PIL import Image

from .errors import UnsupportedColorLayoutError


class AlphaInfo(Enum):
    """Where the alpha channel lives and whether colors are premultiplied."""

    NONE = "none"
    ALPHA_ONLY = "alpha-only"
    NONE_SKIP_FIRST = "none-skip-first"
    NONE_SKIP_LAST = "none-skip-last"
    FIRST = "first"
    LAST = "last"
    PREMULTIPLIED_FIRST = "premultiplied-first"
    PREMULTIPLIED_LAST = "premultiplied-last"


@dataclass(frozen=True, slots=True)
class BitLayout:
    """Memory layout of one decoded frame."""

    bits_per_component: int
    bits_per_pixel: int
    alpha_info: AlphaInfo
    float_components: bool = False


class ColorLayout(Enum):
    """Canonical color layouts, in classification priority order."""

    ALPHA8 = "alpha8"
    RGB565 = "rgb565"
    ARGB8888 = "argb8888"
    RGBA_F16 = "rgbaf16"
    UNKNOWN = "unknown"


CANONICAL_LAYOUTS: dict[ColorLayout, BitLayout] = {
    ColorLayout.ALPHA8: BitLayout(8, 8, AlphaInfo.ALPHA_ONLY),
    ColorLayout.RGB565: BitLayout(5, 16, AlphaInfo.NONE_SKIP_FIRST),
    ColorLayout.ARGB8888: BitLayout(8, 32, AlphaInfo.PREMULTIPLIED_FIRST),
    ColorLayout.RGBA_F16: BitLayout(16, 64, AlphaInfo.PREMULTIPLIED_LAST, float_components=True),
}


def classify_layout(layout: BitLayout) -> ColorLayout:
    """Return the first canonical layout whose template matches ``layout``."""
    for candidate, template in CANONICAL_LAYOUTS.items():
        if template == layout:
            return candidate
    return ColorLayout.UNKNOWN


def template_for(layout: "ColorLayout | str") -> BitLayout:
    """Look up the bit template of a canonical layout.

    Args:
        layout: A ColorLayout member or its string value (e.g. ``"rgb565"``)

    Raises:
        UnsupportedColorLayoutError: If ``layout`` is not one of the canonical four
    """
    try:
        resolved = layout if isinstance(layout, ColorLayout) else ColorLayout(str(layout).lower())
    except ValueError:
        raise UnsupportedColorLayoutError(
            f"Unknown color layout: {layout}", layout=layout
        ) from None

    template = CANONICAL_LAYOUTS.get(resolved)
    if template is None:
        raise UnsupportedColorLayoutError(
            f"No canonical template for color layout: {resolved.value}", layout=resolved
        )
    return template


def render_layout(image: Image.Image, template: BitLayout) -> Image.Image:
    """Re-render ``image`` through the precision of a canonical layout.

    Containers written through Pillow store at most 8 bits per channel, so the
    result is always an ``L``, ``RGB`` or ``RGBA`` image whose values carry the
    quantisation (and premultiplication rounding) of the requested layout.
    """
    layout = classify_layout(template)
    if layout is ColorLayout.UNKNOWN:
        raise UnsupportedColorLayoutError(f"No renderer for layout {template}", layout=template)

    if layout is ColorLayout.ALPHA8:
        return image.convert("RGBA").getchannel("A")

    if layout is ColorLayout.RGB565:
        rgb = np.asarray(image.convert("RGB"), dtype=np.uint8)
        red = rgb[..., 0] >> 3
        green = rgb[..., 1] >> 2
        blue = rgb[..., 2] >> 3
        # Expand back to 8 bits by replicating the high bits into the low ones
        expanded = np.stack(
            [(red << 3) | (red >> 2), (green << 2) | (green >> 4), (blue << 3) | (blue >> 2)],
            axis=-1,
        ).astype(np.uint8)
        return Image.fromarray(expanded)

    if layout is ColorLayout.ARGB8888:
        return image.convert("RGBA").convert("RGBa").convert("RGBA")

    # RGBA_F16: premultiply in half precision, then un-premultiply for storage
    rgba = np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0
    half = rgba.astype(np.float16)
    alpha = half[..., 3:4]
    premultiplied = half[..., :3] * alpha
    with np.errstate(divide="ignore", invalid="ignore"):
        restored = np.where(alpha > 0, premultiplied / alpha, 0.0)
    out = np.concatenate([restored, alpha], axis=-1).astype(np.float32)
    out = np.clip(np.rint(out * 255.0), 0, 255).astype(np.uint8)
    return Image.fromarray(out)

"""Capability matrix – which knobs each container format exposes.

The table is static. A few entries (HEIC quality, HEIC/WebP writing) depend on
whether the codec backend ships an encoder for the format; those sit in a
``with_encoder`` record and are resolved against the backend on every call.
Nothing here caches backend answers.
"""

from dataclasses import dataclass
from types import MappingProxyType

from .backend import CodecBackend
from .formats import ImageFormat
from .pillow_backend import get_default_backend


@dataclass(frozen=True, slots=True)
class Capability:
    """Knobs a container format supports."""

    supports_quality: bool = False
    supports_frame_sampling: bool = False
    supports_dpi: bool = False
    supports_write: bool = False
    supports_color_layout: bool = False


@dataclass(frozen=True, slots=True)
class _CapabilityRule:
    always: Capability
    # Capabilities granted only when the backend can encode the format
    with_encoder: Capability = Capability()


_RULES = MappingProxyType(
    {
        ImageFormat.JPEG: _CapabilityRule(
            Capability(
                supports_quality=True,
                supports_dpi=True,
                supports_write=True,
                supports_color_layout=True,
            )
        ),
        ImageFormat.PNG: _CapabilityRule(
            Capability(supports_dpi=True, supports_write=True, supports_color_layout=True)
        ),
        ImageFormat.GIF: _CapabilityRule(
            Capability(supports_frame_sampling=True, supports_write=True)
        ),
        ImageFormat.HEIC: _CapabilityRule(
            Capability(supports_color_layout=True),
            with_encoder=Capability(supports_quality=True, supports_write=True),
        ),
        ImageFormat.WEBP: _CapabilityRule(
            Capability(), with_encoder=Capability(supports_write=True)
        ),
        ImageFormat.DNG: _CapabilityRule(Capability()),
        ImageFormat.UNKNOWN: _CapabilityRule(Capability()),
    }
)


def _merge(base: Capability, extra: Capability) -> Capability:
    return Capability(
        supports_quality=base.supports_quality or extra.supports_quality,
        supports_frame_sampling=base.supports_frame_sampling or extra.supports_frame_sampling,
        supports_dpi=base.supports_dpi or extra.supports_dpi,
        supports_write=base.supports_write or extra.supports_write,
        supports_color_layout=base.supports_color_layout or extra.supports_color_layout,
    )


def capability_for(fmt: ImageFormat, backend: CodecBackend | None = None) -> Capability:
    """Resolve the capability record of ``fmt`` against ``backend``.

    Args:
        fmt: Container format to look up
        backend: Codec backend to ask about encoders (default: Pillow)

    Returns:
        The static capabilities, plus the encoder-dependent ones when the
        backend currently reports an encoder for ``fmt``
    """
    rule = _RULES[fmt]
    if rule.with_encoder == Capability():
        return rule.always

    backend = backend or get_default_backend()
    if fmt in backend.write_capable_formats():
        return _merge(rule.always, rule.with_encoder)
    return rule.always


def supports_quality(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return capability_for(fmt, backend).supports_quality


def supports_frame_sampling(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return capability_for(fmt, backend).supports_frame_sampling


def supports_dpi(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return capability_for(fmt, backend).supports_dpi


def supports_write(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return capability_for(fmt, backend).supports_write


def supports_color_layout(fmt: ImageFormat, backend: CodecBackend | None = None) -> bool:
    return capability_for(fmt, backend).supports_color_layout


def write_capable_formats(backend: CodecBackend | None = None) -> set[ImageFormat]:
    """All formats that can currently be written through ``backend``."""
    return {fmt for fmt in _RULES if supports_write(fmt, backend)}

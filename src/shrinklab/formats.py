"""Container format tags and byte-signature sniffing."""

from enum import Enum

# Longest prefix any signature check needs to look at
SNIFF_PREFIX_LENGTH = 12

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"
GIF_SIGNATURE = b"GIF"
TIFF_SIGNATURES = (b"MM\x00*", b"II*\x00", b"II\x00*")
HEIC_BRANDS = frozenset({"ftypheic", "ftypheix", "ftyphevc", "ftyphevx"})


class ImageFormat(Enum):
    """Container formats ShrinkLab can recognise."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    HEIC = "heic"
    DNG = "dng"
    WEBP = "webp"
    UNKNOWN = "unknown"

    @property
    def extension(self) -> str:
        """File extension without the leading dot."""
        return _EXTENSIONS[self]

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @staticmethod
    def from_name(name: str) -> "ImageFormat":
        """Parse a user-facing format name such as ``jpg`` or ``HEIF``.

        Raises:
            ValueError: If the name does not map to a known format
        """
        key = name.strip().lower().lstrip(".")
        aliases = {"jpg": "jpeg", "jpe": "jpeg", "heif": "heic", "tif": "dng", "tiff": "dng"}
        key = aliases.get(key, key)
        try:
            fmt = ImageFormat(key)
        except ValueError:
            raise ValueError(f"Unknown image format: {name}") from None
        if fmt is ImageFormat.UNKNOWN:
            raise ValueError(f"Unknown image format: {name}")
        return fmt


_EXTENSIONS = {
    ImageFormat.JPEG: "jpg",
    ImageFormat.PNG: "png",
    ImageFormat.GIF: "gif",
    ImageFormat.HEIC: "heic",
    ImageFormat.DNG: "dng",
    ImageFormat.WEBP: "webp",
    ImageFormat.UNKNOWN: "bin",
}

_MIME_TYPES = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.GIF: "image/gif",
    ImageFormat.HEIC: "image/heic",
    ImageFormat.DNG: "image/x-adobe-dng",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.UNKNOWN: "application/octet-stream",
}


def _is_heic(header: bytes) -> bool:
    brand = header[4:12].decode("ascii", errors="replace").lower()
    return brand in HEIC_BRANDS


def _is_webp(header: bytes) -> bool:
    return header[0:4] == b"RIFF" and header[8:12] == b"WEBP"


def sniff_format(data: bytes) -> ImageFormat:
    """Identify the container format of ``data`` from its leading bytes.

    Signatures are checked in a fixed priority order (PNG, JPEG, GIF, HEIC,
    TIFF-style DNG, WebP) because some of them share prefixes with formats
    checked later.

    Args:
        data: Raw encoded image bytes

    Returns:
        The detected format, or ``ImageFormat.UNKNOWN`` for short or
        unrecognised buffers
    """
    if len(data) < SNIFF_PREFIX_LENGTH:
        return ImageFormat.UNKNOWN

    header = bytes(data[:SNIFF_PREFIX_LENGTH])

    if header.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG
    if header.startswith(JPEG_SIGNATURE):
        return ImageFormat.JPEG
    if header.startswith(GIF_SIGNATURE):
        return ImageFormat.GIF
    if _is_heic(header):
        return ImageFormat.HEIC
    if header.startswith(TIFF_SIGNATURES):
        return ImageFormat.DNG
    if _is_webp(header):
        return ImageFormat.WEBP
    return ImageFormat.UNKNOWN

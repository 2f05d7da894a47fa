"""Immutable encoded-image value passed between operations."""

import hashlib
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

from .formats import ImageFormat, sniff_format


@dataclass(frozen=True)
class ImageBlob:
    """Raw encoded bytes plus a lazily sniffed container format.

    Blobs are never mutated; every operation returns a new one (or the same
    instance when it has nothing to do).
    """

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))

    def __len__(self) -> int:
        return len(self.data)

    @cached_property
    def format(self) -> ImageFormat:
        return sniff_format(self.data)

    @cached_property
    def sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()

    @classmethod
    def from_path(cls, path: Path) -> "ImageBlob":
        """Read a blob from disk.

        Raises:
            OSError: If the file cannot be read
        """
        return cls(Path(path).read_bytes())

    def write_to(self, path: Path) -> Path:
        """Atomically write the blob to ``path``."""
        from .io import write_blob  # avoid circular import

        return write_blob(self, path)

    def __repr__(self) -> str:
        return f"ImageBlob(format={self.format.value}, size={len(self.data)})"


def as_blob(value: "ImageBlob | bytes | bytearray | memoryview") -> ImageBlob:
    """Return ``value`` as an ImageBlob, wrapping raw bytes if needed."""
    if isinstance(value, ImageBlob):
        return value
    return ImageBlob(bytes(value))

"""Configuration settings for ShrinkLab."""

import os
from dataclasses import dataclass


@dataclass
class CompressionConfig:
    """Knobs for the byte-budget search and frame sampling."""

    # DPI written by the normalization stage when the caller set none
    DEFAULT_DPI: tuple[float, float] = (72.0, 72.0)

    # Two DPI values closer than this are considered equal
    DPI_TOLERANCE: float = 0.05

    # Quality bisection: maximum trial encodes, and the lower edge of the
    # accepted band as a fraction of the byte budget
    QUALITY_PROBE_LIMIT: int = 6
    QUALITY_FIT_RATIO: float = 0.9

    # Frame durations below this are treated as DEFAULT_FRAME_DURATION_MS
    MIN_FRAME_DURATION_MS: float = 11.0
    DEFAULT_FRAME_DURATION_MS: float = 100.0

    # Upper bound for the summed duration of a merged frame group
    MAX_MERGED_FRAME_DURATION_MS: float = 200.0

    # (minimum frame count, stride) pairs, checked from the top down.
    # Anything below the last threshold keeps every frame.
    SAMPLE_STRIDE_TABLE: tuple[tuple[int, int], ...] | None = None

    # Dimension shrink loop bounds
    MAX_SHRINK_ITERATIONS: int = 24
    MIN_LONGEST_SIDE: float = 8.0

    def __post_init__(self) -> None:
        if self.SAMPLE_STRIDE_TABLE is None:
            self.SAMPLE_STRIDE_TABLE = ((40, 6), (30, 5), (20, 4), (8, 3), (2, 2))

        if len(self.DEFAULT_DPI) != 2 or any(v <= 0 for v in self.DEFAULT_DPI):
            raise ValueError(f"DEFAULT_DPI must be two positive values, got {self.DEFAULT_DPI}")

        if self.QUALITY_PROBE_LIMIT <= 0:
            raise ValueError(
                f"QUALITY_PROBE_LIMIT must be positive, got {self.QUALITY_PROBE_LIMIT}"
            )

        if not 0.0 < self.QUALITY_FIT_RATIO <= 1.0:
            raise ValueError(
                f"QUALITY_FIT_RATIO must be in (0, 1], got {self.QUALITY_FIT_RATIO}"
            )

        if self.DEFAULT_FRAME_DURATION_MS <= 0 or self.MAX_MERGED_FRAME_DURATION_MS <= 0:
            raise ValueError("Frame durations must be positive")

        thresholds = [threshold for threshold, _ in self.SAMPLE_STRIDE_TABLE]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError(
                f"SAMPLE_STRIDE_TABLE must be sorted by descending frame count, got {thresholds}"
            )
        if any(stride <= 0 for _, stride in self.SAMPLE_STRIDE_TABLE):
            raise ValueError("SAMPLE_STRIDE_TABLE strides must be positive")

        if self.MAX_SHRINK_ITERATIONS <= 0:
            raise ValueError(
                f"MAX_SHRINK_ITERATIONS must be positive, got {self.MAX_SHRINK_ITERATIONS}"
            )

        if self.MIN_LONGEST_SIDE < 1:
            raise ValueError(f"MIN_LONGEST_SIDE must be >= 1, got {self.MIN_LONGEST_SIDE}")


@dataclass
class BackendConfig:
    """Configuration for the Pillow codec backend with environment variable overrides."""

    # Quality used when re-encoding a lossy format without an explicit override.
    # Override with: SHRINKLAB_DEFAULT_QUALITY
    DEFAULT_QUALITY: float = 0.9

    # Resampling filter for thumbnails: nearest, bilinear, bicubic, lanczos
    # Override with: SHRINKLAB_RESAMPLE
    RESAMPLE: str = "lanczos"

    # GIF writer settings
    GIF_DISPOSAL: int = 2
    GIF_LOOP: int = 0

    # Register pillow-heif (if installed) so HEIC can be read and written.
    # Override with: SHRINKLAB_ENABLE_HEIF=0
    ENABLE_HEIF_PLUGIN: bool = True

    def __post_init__(self) -> None:
        """Apply environment variable overrides after initialization."""
        quality = os.getenv("SHRINKLAB_DEFAULT_QUALITY")
        if quality:
            self.DEFAULT_QUALITY = float(quality)

        resample = os.getenv("SHRINKLAB_RESAMPLE")
        if resample:
            self.RESAMPLE = resample.lower()

        enable_heif = os.getenv("SHRINKLAB_ENABLE_HEIF")
        if enable_heif:
            self.ENABLE_HEIF_PLUGIN = enable_heif.lower() not in {"0", "false", "no"}

        if not 0.0 <= self.DEFAULT_QUALITY <= 1.0:
            raise ValueError(
                f"DEFAULT_QUALITY must be between 0.0 and 1.0, got {self.DEFAULT_QUALITY}"
            )

        valid_filters = {"nearest", "bilinear", "bicubic", "lanczos"}
        if self.RESAMPLE not in valid_filters:
            raise ValueError(f"Invalid resample filter: {self.RESAMPLE}")


DEFAULT_COMPRESSION_CONFIG = CompressionConfig()
DEFAULT_BACKEND_CONFIG = BackendConfig()

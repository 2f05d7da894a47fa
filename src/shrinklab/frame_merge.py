"""Frame sampling for animated images.

Frames are dropped in fixed-size groups: every ``stride`` consecutive frames
collapse into the first frame of the group, which inherits the group's summed
display time (capped so slow animations do not stall).

Timing rules:
- Authored durations below ``MIN_FRAME_DURATION_MS`` are treated as
  ``DEFAULT_FRAME_DURATION_MS``, matching how browsers play near-zero GIF
  delays.
- A merged frame lasts at most ``MAX_MERGED_FRAME_DURATION_MS``.
"""

from dataclasses import dataclass

from .config import DEFAULT_COMPRESSION_CONFIG, CompressionConfig


@dataclass(frozen=True, slots=True)
class MergedFrame:
    """A kept frame: its index in the source and its new display time."""

    index: int
    duration_ms: float


def normalize_duration(
    duration_ms: float, config: CompressionConfig = DEFAULT_COMPRESSION_CONFIG
) -> float:
    """Replace too-short authored durations with the default frame duration."""
    if duration_ms < config.MIN_FRAME_DURATION_MS:
        return config.DEFAULT_FRAME_DURATION_MS
    return duration_ms


def fit_sample_stride(
    frame_count: int, config: CompressionConfig = DEFAULT_COMPRESSION_CONFIG
) -> int:
    """Pick the sampling stride for an animation of ``frame_count`` frames.

    Example:
        With the default table: 7 → 2, 19 → 3, 45 → 6, 1 → 1
    """
    for threshold, stride in config.SAMPLE_STRIDE_TABLE:
        if frame_count >= threshold:
            return stride
    return 1


def sampled_indices(frame_count: int, stride: int) -> list[int]:
    """Indices of the frames kept when sampling every ``stride``-th frame."""
    if stride <= 0:
        raise ValueError(f"stride must be positive, got {stride}")
    return list(range(0, frame_count, stride))


def merge_frame_durations(
    durations: list[float],
    stride: int,
    config: CompressionConfig = DEFAULT_COMPRESSION_CONFIG,
) -> list[MergedFrame]:
    """Collapse each group of ``stride`` frames into its first frame.

    Args:
        durations: Authored per-frame durations in milliseconds, in playback order
        stride: Number of consecutive frames per group
        config: Timing thresholds

    Returns:
        One MergedFrame per group. A stride of 1 returns every frame with its
        authored duration untouched.

    Example:
        ``[50, 50, 50, 50, 50]`` with stride 2 keeps frames 0, 2 and 4 with
        durations ``[100, 100, 50]``.
    """
    if stride <= 0:
        raise ValueError(f"stride must be positive, got {stride}")

    if stride == 1:
        return [MergedFrame(i, float(d)) for i, d in enumerate(durations)]

    merged = []
    for start in sampled_indices(len(durations), stride):
        group = durations[start : start + stride]
        total = sum(normalize_duration(d, config) for d in group)
        merged.append(MergedFrame(start, min(total, config.MAX_MERGED_FRAME_DURATION_MS)))
    return merged

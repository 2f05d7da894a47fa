"""ShrinkLab — fit images into byte, pixel and quality budgets."""

__version__: str = "0.1.0"

from .blob import ImageBlob
from .builder import ByteBudget, FixedWidth, ImageBuilder, build
from .color_layout import ColorLayout
from .errors import (
    BudgetExhaustedError,
    CodecError,
    CodecStage,
    IllegalArgumentError,
    ShrinkLabError,
    UnsupportedColorLayoutError,
    UnsupportedFormatError,
)
from .formats import ImageFormat, sniff_format
from .inspector import ImageProperties, inspect
from .operations import (
    change_color_layout,
    change_container_format,
    color_layout,
    compress_to_byte_budget,
    frame_count,
    frame_durations,
    has_alpha,
    image_dimensions,
    image_dpi,
    image_format,
    is_write_supported,
    orientation,
    set_dpi,
    set_frame_sampling,
    set_longest_side,
    set_quality,
)

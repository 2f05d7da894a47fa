"""Error taxonomy and standardized error handling for ShrinkLab.

Every public operation either returns a new image blob or raises exactly one
of the errors defined here. Codec backend failures are transformed into
stage-tagged :class:`CodecError` instances by :func:`codec_stage` so callers
can tell *where* an encode pipeline broke without inspecting backend
exceptions.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any


class ErrorLevel(Enum):
    """Error severity levels for consistent logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class CodecStage(Enum):
    """Pipeline stage at which a codec backend call failed."""

    SOURCE_MISSING = "source-missing"
    DESTINATION_MISSING = "destination-missing"
    FRAME_MISSING = "frame-missing"
    THUMBNAIL_MISSING = "thumbnail-missing"
    FINALIZE_FAILED = "finalize-failed"


class ShrinkLabError(Exception):
    """Base exception class for all ShrinkLab errors."""

    def __init__(
        self, message: str, cause: Exception | None = None, context: dict | None = None
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (caused by: {self.cause})"
        return base_msg


class UnsupportedFormatError(ShrinkLabError):
    """Raised when a container format cannot take part in an operation."""

    def __init__(
        self,
        message: str,
        format_type: Any = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.format_type = format_type


class UnsupportedColorLayoutError(ShrinkLabError):
    """Raised when a requested color layout has no canonical template."""

    def __init__(
        self,
        message: str,
        layout: Any = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.layout = layout


class IllegalArgumentError(ShrinkLabError, ValueError):
    """Raised when a numeric knob (width, quality, sample count...) is out of range."""

    def __init__(self, field: str, value: Any, reason: str | None = None):
        message = f"Illegal value for {field}: {value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, context={"field": field, "value": value})
        self.field = field
        self.value = value


class CodecError(ShrinkLabError):
    """Raised when the codec backend fails at a specific pipeline stage."""

    def __init__(
        self,
        message: str,
        stage: CodecStage = CodecStage.FINALIZE_FAILED,
        index: int | None = None,
        format_type: Any = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.stage = stage
        self.index = index
        self.format_type = format_type


class BudgetExhaustedError(ShrinkLabError):
    """Raised when the dimension shrink loop hits its iteration cap or size floor."""

    def __init__(self, max_bytes: int, best_size: int, iterations: int):
        super().__init__(
            f"Could not fit image into {max_bytes} bytes "
            f"(smallest result {best_size} bytes after {iterations} shrink iterations)",
            context={
                "max_bytes": max_bytes,
                "best_size": best_size,
                "iterations": iterations,
            },
        )
        self.max_bytes = max_bytes
        self.best_size = best_size
        self.iterations = iterations


# ---------------------------------------------------------------------------
# Backend-side failures (raised by CodecBackend implementations)
# ---------------------------------------------------------------------------


class BackendError(ShrinkLabError):
    """Base class for failures reported by a codec backend."""

    pass


class NotDecodableError(BackendError):
    """The backend could not open the given bytes as an image source."""

    pass


class EncodeFailedError(BackendError):
    """The backend could not produce encoded bytes."""

    pass


class EncoderMissingError(BackendError):
    """The backend has no encoder for the requested container format."""

    pass


def handle_error(
    error: Exception,
    operation: str,
    error_type: type[ShrinkLabError] = ShrinkLabError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
    reraise: bool = True,
    **error_kwargs: Any,
) -> ShrinkLabError | None:
    """Standardized error handling with consistent logging and error transformation.

    Args:
        error: Original exception that occurred
        operation: Description of operation that failed
        error_type: Type of ShrinkLabError to raise
        level: Logging level for the error
        context: Additional context information
        logger: Logger to use (defaults to module logger)
        reraise: Whether to reraise the transformed exception
        **error_kwargs: Extra constructor arguments for ``error_type``

    Returns:
        The transformed error if reraise=False, otherwise None

    Raises:
        ShrinkLabError: Transformed error if reraise=True
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    message = f"Failed to {operation}: {error}"

    error_context = dict(context or {})
    error_context.update(
        {
            "operation": operation,
            "original_error_type": type(error).__name__,
            "original_error_message": str(error),
        }
    )

    transformed_error = error_type(
        message, cause=error, context=error_context, **error_kwargs
    )

    log_message = f"🚨 {operation.capitalize()} failed: {error}"
    context_str = ", ".join(
        f"{k}={v}" for k, v in error_context.items() if not k.startswith("original_")
    )
    if context_str:
        log_message += f" (context: {context_str})"

    log_func = getattr(logger, level.value)
    log_func(log_message)

    if level in [ErrorLevel.ERROR, ErrorLevel.CRITICAL]:
        logger.debug(f"Traceback for {operation}: {traceback.format_exc()}")

    if reraise:
        raise transformed_error from error
    return transformed_error


@contextmanager
def codec_stage(
    stage: CodecStage,
    operation: str,
    index: int | None = None,
    format_type: Any = None,
    logger: logging.Logger | None = None,
) -> Iterator[None]:
    """Context manager that tags backend failures with the stage they occurred in.

    Usage:
        with codec_stage(CodecStage.FRAME_MISSING, "decode frame", index=3):
            backend.decode_frame(source, 3)

    Backend errors and unexpected exceptions become :class:`CodecError`;
    other ShrinkLab errors pass through unchanged.
    """
    try:
        yield
    except BackendError as e:
        _raise_codec_error(e, stage, operation, index, format_type, logger)
    except ShrinkLabError:
        raise
    except Exception as e:
        _raise_codec_error(e, stage, operation, index, format_type, logger)


def _raise_codec_error(
    error: Exception,
    stage: CodecStage,
    operation: str,
    index: int | None,
    format_type: Any,
    logger: logging.Logger | None,
) -> None:
    context: dict[str, Any] = {"stage": stage.value}
    if index is not None:
        context["index"] = index
    if format_type is not None:
        context["format"] = getattr(format_type, "value", format_type)

    handle_error(
        error,
        operation,
        CodecError,
        ErrorLevel.ERROR,
        context=context,
        logger=logger,
        stage=stage,
        index=index,
        format_type=format_type,
    )


def log_warning_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log a warning with standardized context formatting."""
    if logger is None:
        logger = logging.getLogger(__name__)

    warning_msg = f"⚠️  {message}"
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        warning_msg += f" (context: {context_str})"

    logger.warning(warning_msg)

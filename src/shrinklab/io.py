"""I/O utilities: logging setup, atomic writes and blob files."""

import logging
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from shutil import move

from .blob import ImageBlob
from .formats import ImageFormat

logger = logging.getLogger(__name__)


def setup_logging(log_dir: Path | None = None, log_level: str = "INFO") -> logging.Logger:
    """Set up logging configuration for ShrinkLab.

    Args:
        log_dir: Directory to store log files (console only when None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        handlers.append(logging.FileHandler(log_dir / f"shrinklab_{timestamp}.log"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    return logging.getLogger("shrinklab")


@contextmanager
def atomic_write(target_path: Path, mode: str = "wb"):
    """Context manager for atomic file writes using temporary files.

    Args:
        target_path: Final path where file should be written
        mode: File open mode

    Yields:
        File handle for writing

    Example:
        with atomic_write(Path("out.jpg")) as f:
            f.write(blob.data)
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temporary file in same directory as target
    with tempfile.NamedTemporaryFile(
        mode=mode,
        dir=target_path.parent,
        delete=False,
        suffix=f".tmp_{target_path.name}",
    ) as temp_file:
        try:
            yield temp_file
            temp_file.flush()
            move(temp_file.name, target_path)
        except Exception:
            Path(temp_file.name).unlink(missing_ok=True)
            raise


def read_blob(path: Path) -> ImageBlob:
    """Load an image file into a blob.

    Raises:
        OSError: If the file cannot be read
    """
    blob = ImageBlob.from_path(path)
    logger.debug(f"Read {path}: {blob!r}")
    return blob


def write_blob(blob: ImageBlob, path: Path) -> Path:
    """Atomically write ``blob`` to ``path`` and return the path."""
    with atomic_write(Path(path)) as f:
        f.write(blob.data)
    logger.debug(f"Wrote {len(blob)} bytes to {path}")
    return Path(path)


def default_output_path(
    input_path: Path, suffix: str, fmt: ImageFormat | None = None
) -> Path:
    """Derive an output path next to ``input_path``.

    Example:
        ``photos/cat.png`` with suffix ``small`` and JPEG → ``photos/cat.small.jpg``
    """
    extension = fmt.extension if fmt is not None else input_path.suffix.lstrip(".")
    return input_path.with_name(f"{input_path.stem}.{suffix}.{extension}")

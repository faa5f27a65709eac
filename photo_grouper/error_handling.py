"""
Logging setup and the exception hierarchy of the photo grouper.
"""

import logging
import sys
from typing import Optional
from pathlib import Path

SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.tiff', '.tif'}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    (Re)configure the ``photo_grouper`` logger.

    Module loggers are children of it, so this controls every stage.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file that receives a copy of the log
    """
    root = logging.getLogger('photo_grouper')
    root.setLevel(getattr(logging, log_level.upper()))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    return root

# Global logger instance
logger = setup_logging()

class PhotoGrouperError(Exception):
    """Base exception class for photo grouper errors."""
    pass

class MetadataExtractionError(PhotoGrouperError):
    """A single file's metadata could not be read."""
    pass

class SignalImportError(PhotoGrouperError):
    """Problem with the prior-stage culling report."""
    pass

class MalformedSignalError(SignalImportError):
    """The culling report exists but cannot be parsed."""
    pass

class ClusteringError(PhotoGrouperError):
    """The clusterer was called with input that breaks its contract."""
    pass

class OrganizationError(PhotoGrouperError):
    """A file could not be copied into its cluster folder."""
    pass

def handle_error(error: Exception, context: str = "", raise_error: bool = True):
    """
    Log an error and optionally re-raise it.

    Fatal errors are logged with a traceback before re-raising; recoverable
    ones (``raise_error=False``) are logged as a warning and swallowed.
    """
    message = f"{context}: {error}" if context else str(error)

    if raise_error:
        logger.error(message, exc_info=True)
        raise error

    logger.warning(message)

def validate_image_file(file_path: str) -> bool:
    """
    Check that a path is an existing file with a supported extension.

    Raises:
        MetadataExtractionError: If it is not
    """
    path = Path(file_path)

    if not path.is_file():
        reason = "is not a file" if path.exists() else "does not exist"
        raise MetadataExtractionError(f"{file_path} {reason}")

    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise MetadataExtractionError(f"Unsupported image format: {path.suffix}")

    return True

def safe_file_operation(operation_func, *args, **kwargs):
    """
    Run a file-system call, converting OS errors to OrganizationError.

    Raises:
        OrganizationError: If the operation fails
    """
    try:
        return operation_func(*args, **kwargs)
    except FileNotFoundError as e:
        raise OrganizationError(f"File not found: {e}") from e
    except PermissionError as e:
        raise OrganizationError(f"Permission denied: {e}") from e
    except OSError as e:
        raise OrganizationError(f"File system error: {e}") from e

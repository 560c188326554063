"""Error types for halofx.

Every failure of a render is terminal: nothing is retried internally, the
CLI decides how to surface it. Errors carry a category and a context dict
so they can be logged and displayed consistently.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from halofx.logging import get_logger, log_operation_failed

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    VALIDATION = "validation"  # Bad input or geometry
    CONFIGURATION = "configuration"  # Inconsistent composition inputs
    RESOURCE = "resource"  # File could not be written or read
    EXTERNAL = "external"  # ffmpeg / ffprobe failure
    INTERNAL = "internal"  # Bug in code


class HaloFxError(Exception):
    """Base exception for halofx errors.

    Attributes:
        message: Human-readable error message
        category: Error category for handling
        context: Additional context information
    """

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class InputValidationError(HaloFxError):
    """Input path, output path or background choice is unusable."""

    category = ErrorCategory.VALIDATION


class GeometryPreconditionError(HaloFxError):
    """Fit bounds or source dimensions are not positive."""

    category = ErrorCategory.VALIDATION


class OverwriteRefusedError(HaloFxError):
    """Destination exists and overwriting was not authorised."""

    category = ErrorCategory.VALIDATION


class MaskIOError(HaloFxError):
    """A mask raster could not be created or encoded."""

    category = ErrorCategory.RESOURCE


class CompositionConfigError(HaloFxError):
    """Composition inputs have zero or mismatched sizes."""

    category = ErrorCategory.CONFIGURATION


class ExternalProcessError(HaloFxError):
    """An external media tool failed.

    The tool's diagnostic output is kept verbatim in ``stderr``; it is
    relayed, never interpreted.

    Attributes:
        exit_status: Process exit status, or None if it never ran
        stderr: Captured standard error text
    """

    category = ErrorCategory.EXTERNAL

    def __init__(
        self,
        message: str,
        exit_status: int | None = None,
        stderr: str = "",
        context: dict | None = None,
    ):
        super().__init__(message, context)
        self.exit_status = exit_status
        self.stderr = stderr

    def __str__(self) -> str:
        text = super().__str__()
        if self.stderr:
            text += f"\n{self.stderr.rstrip()}"
        return text


class ProbeError(ExternalProcessError):
    """Source has no decodable video stream or reports bad dimensions."""


class ErrorContext:
    """Context manager that records failures of a named operation.

    The failure is logged at debug level with its context, for the log
    file; showing it to the user is left to the caller. The exception
    always propagates.
    """

    def __init__(self, operation: str, context: dict | None = None):
        self.operation = operation
        self.context = context or {}
        self.error: Exception | None = None

    def __enter__(self) -> "ErrorContext":
        logger.debug(f"Starting operation: {self.operation}")
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> bool:
        if exc_val is None:
            logger.debug(f"Completed operation: {self.operation}")
            return False

        self.error = exc_val
        log_operation_failed(
            logger,
            self.operation,
            exc_val,
            level=logging.DEBUG,
            **self.context,
        )
        return False


def format_error_for_display(error: Exception) -> str:
    """Format an error message for user display.

    Args:
        error: Error to format

    Returns:
        Human-readable error message
    """
    if isinstance(error, HaloFxError):
        category = error.category.value
        base_message = error.message

        if error.context:
            context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
            base_message = f"{base_message} ({context_str})"

        if isinstance(error, ExternalProcessError) and error.stderr:
            base_message = f"{base_message}\n{error.stderr.rstrip()}"

        return f"[{category}] {base_message}"

    return f"[error] {type(error).__name__}: {error}"

"""
Error handling for the file configuration provider.

Errors raised before the provider is started propagate to the caller;
errors inside the watcher task are only logged.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """
    Error codes for the file configuration provider.

    - 1100-1199: Configuration errors
    - 1200-1299: File system errors
    - 1300-1399: Watch subscription errors
    """

    # Configuration errors (1100-1199)
    NO_TARGET = 1100
    BUILD_FAILED = 1101
    TEMPLATE_RENDER_FAILED = 1102
    DECODE_FAILED = 1103

    # File system errors (1200-1299)
    FILE_READ_ERROR = 1201
    DIRECTORY_READ_ERROR = 1203

    # Watch subscription errors (1300-1399)
    WATCH_SETUP_FAILED = 1300


class ConfigError(Exception):
    """Base exception for configuration provider errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize configuration error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for structured logging.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class NoTargetError(ConfigError):
    """No directory, filename or fallback file was configured."""

    def __init__(self):
        super().__init__(
            code=ErrorCode.NO_TARGET,
            message="error using file configuration backend, no filename defined",
            suggestion="Set one of directory, filename or fallback_file"
        )


class FileReadError(ConfigError):
    """Configuration file could not be read."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            code=ErrorCode.FILE_READ_ERROR,
            message=f"error reading configuration file: {file_path} - {reason}",
            suggestion="Check that the file exists and is readable",
            context={"file_path": file_path, "reason": reason}
        )


class DirectoryReadError(ConfigError):
    """Configuration directory could not be listed."""

    def __init__(self, directory: str, reason: str):
        super().__init__(
            code=ErrorCode.DIRECTORY_READ_ERROR,
            message=f"unable to read directory {directory}: {reason}",
            suggestion="Check that the directory exists and is readable",
            context={"directory": directory, "reason": reason}
        )


class TemplateRenderError(ConfigError):
    """Configuration template could not be rendered."""

    def __init__(self, reason: str, line_number: Optional[int] = None):
        context: Dict[str, Any] = {"reason": reason}
        if line_number:
            context["line_number"] = line_number

        super().__init__(
            code=ErrorCode.TEMPLATE_RENDER_FAILED,
            message=f"error rendering configuration template: {reason}",
            suggestion="Check template syntax and the functions it calls",
            context=context
        )


class DecodeError(ConfigError):
    """Rendered configuration text could not be decoded."""

    def __init__(self, reason: str):
        super().__init__(
            code=ErrorCode.DECODE_FAILED,
            message=f"error decoding configuration: {reason}",
            suggestion="Check TOML syntax and entity fields",
            context={"reason": reason}
        )


class BuildError(ConfigError):
    """Building a snapshot from a file failed."""

    def __init__(self, file_path: str, cause: Exception):
        """
        Initialize build error.

        Args:
            file_path: File the snapshot was built from
            cause: Underlying read, render or decode error
        """
        self.cause = cause
        context: Dict[str, Any] = {"file_path": file_path}
        if isinstance(cause, ConfigError):
            context["cause_code"] = cause.code.value

        super().__init__(
            code=ErrorCode.BUILD_FAILED,
            message=f"error building configuration from {file_path}: {cause}",
            suggestion=getattr(cause, "suggestion", None),
            context=context
        )


class WatchSetupError(ConfigError):
    """Filesystem watch subscription could not be established."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code=ErrorCode.WATCH_SETUP_FAILED,
            message=f"error adding file watcher: {path} - {reason}",
            suggestion="Ensure the watched directory exists and inotify limits are not exhausted",
            context={"path": path, "reason": reason}
        )

# Exception taxonomy for mcpctl
from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationError:
    """Represents a validation error or warning for one server definition.

    ABOUTME: Returned by validators rather than raised
    ABOUTME: Severity level distinguishes between blocking errors and warnings
    """
    server_name: str
    message: str
    severity: str = "error"  # 'error' or 'warning'


class McpCtlError(Exception):
    """Base class for every error raised by the engine."""


class ConfigNotFoundError(McpCtlError, FileNotFoundError):
    """Application config file does not exist (the application is undetected)."""


class ConfigParseError(McpCtlError, ValueError):
    """Config file exists but its content is malformed."""

    def __init__(self, message: str, path: object = None) -> None:
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class WriteConflictError(McpCtlError):
    """On-disk content changed since it was last read."""

    def __init__(self, app_name: str, expected: str | None, actual: str | None) -> None:
        self.app_name = app_name
        self.expected = expected
        self.actual = actual
        super().__init__(f"{app_name}: config file was modified outside mcpctl since last read")


class ConfigPermissionError(McpCtlError, PermissionError):
    """Filesystem refused access to a config file."""


class WriteError(McpCtlError, OSError):
    """Config file could not be written."""


class BackupFailedError(McpCtlError):
    """A backup snapshot could not be created or verified."""


class ServerValidationError(McpCtlError):
    """Raised when a server definition fails validation."""

    def __init__(self, error: ValidationError) -> None:
        self.error = error
        super().__init__(f"Server '{error.server_name}': {error.message}")


class ServerNotFoundError(McpCtlError, KeyError):
    """Server name not present for the requested application."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnknownApplicationError(McpCtlError, KeyError):
    """Application name is not one of the supported applications."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ApplicationDisabledError(McpCtlError):
    """Application is supported but switched off in settings.enabled_apps."""

# mcpctl - MCP server configuration sync engine
# ABOUTME: Version information
__version__ = "0.1.0"

# ABOUTME: Export core data models and errors
# ABOUTME: Export the engine entry points (context, service, scheduler)
from mcpctl.errors import (
    ApplicationDisabledError,
    BackupFailedError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigPermissionError,
    McpCtlError,
    ServerNotFoundError,
    ServerValidationError,
    UnknownApplicationError,
    ValidationError,
    WriteConflictError,
    WriteError,
)
from mcpctl.models import (
    Application,
    ApplicationAdapter,
    BackupEntry,
    ConsolidatedServer,
    MCPServer,
    ServerRow,
    SyncRecord,
)
from mcpctl.context import EngineContext
from mcpctl.scheduler import RefreshScheduler
from mcpctl.service import ControlService, ServerConfig
from mcpctl.settings import Settings, SettingsStore
from mcpctl.sync import SyncCoordinator, SyncReport, SyncResult

__all__ = [
    "__version__",
    "Application",
    "ApplicationAdapter",
    "BackupEntry",
    "ConsolidatedServer",
    "MCPServer",
    "ServerRow",
    "SyncRecord",
    "EngineContext",
    "ControlService",
    "ServerConfig",
    "RefreshScheduler",
    "Settings",
    "SettingsStore",
    "SyncCoordinator",
    "SyncReport",
    "SyncResult",
    "McpCtlError",
    "ApplicationDisabledError",
    "BackupFailedError",
    "ConfigNotFoundError",
    "ConfigParseError",
    "ConfigPermissionError",
    "ServerNotFoundError",
    "ServerValidationError",
    "UnknownApplicationError",
    "ValidationError",
    "WriteConflictError",
    "WriteError",
]

# Core data models for mcpctl
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Literal, Protocol, Sequence, runtime_checkable

from mcpctl.errors import ValidationError

SyncStatus = Literal["unsynced", "synced", "pending", "conflict", "error"]


@dataclass(frozen=True)
class MCPServer:
    """Immutable MCP server launch record.

    ABOUTME: Uses frozen dataclass; edits go through dataclasses.replace()
    ABOUTME: extra carries per-server keys the adapter does not understand
    """
    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Application:
    """One consuming application and its synchronization state.

    ABOUTME: Created by the detection scan, mutated only by the SyncCoordinator
    """
    name: str
    display_name: str
    config_path: Path
    detected: bool = False
    server_count: int = 0
    last_sync: datetime | None = None
    sync_status: SyncStatus = "unsynced"
    message: str | None = None


@dataclass
class ConsolidatedServer:
    """Cross-application view of every server sharing one name."""
    name: str
    entries: dict[str, MCPServer] = field(default_factory=dict)

    @property
    def applications(self) -> list[str]:
        return list(self.entries)

    def enabled_in(self, app_name: str) -> bool:
        return self.entries[app_name].enabled


@dataclass(frozen=True)
class SyncRecord:
    """Content hash captured at the last successful read or write."""
    app_name: str
    content_hash: str | None
    timestamp: datetime


@dataclass(frozen=True)
class BackupEntry:
    """A single snapshot of an application config file."""
    app_name: str
    timestamp: datetime
    path: Path
    content_hash: str
    source_path: Path | None = None


@dataclass(frozen=True)
class ServerRow:
    """Flattened (server, application, enabled) row for display."""
    server: str
    application: str
    enabled: bool


@runtime_checkable
class ApplicationAdapter(Protocol):
    """Protocol for application-specific config adapters.

    ABOUTME: One implementation per supported application
    ABOUTME: Selected through the static ADAPTERS registry, never by inspection
    """

    @property
    def name(self) -> str:
        """Stable application identifier (e.g. 'claude-desktop')."""
        ...

    @property
    def display_name(self) -> str:
        """Human-readable application name."""
        ...

    @property
    def config_path(self) -> Path:
        """Resolved location of the config file (may not exist)."""
        ...

    def detect(self) -> Application:
        """Probe the config location."""
        ...

    def read(self) -> tuple[list[MCPServer], str | None]:
        """Parse servers from disk and return them with the content hash."""
        ...

    def read_bytes(self, required: bool = False) -> bytes | None:
        """Raw file content, or None if the file is absent (ConfigNotFoundError if required)."""
        ...

    def parse(self, content: bytes) -> list[MCPServer]:
        """Parse servers out of raw file content."""
        ...

    def render(self, servers: Sequence[MCPServer], base: bytes | None = None) -> bytes:
        """Serialize servers into the existing document."""
        ...

    def write(self, servers: Sequence[MCPServer], base: bytes | None = None) -> None:
        """Atomically persist servers."""
        ...

    def write_bytes(self, content: bytes) -> None:
        """Atomically replace the file with raw content."""
        ...

    def validate(self, server: MCPServer, existing: Iterable[str] = ()) -> ValidationError | None:
        """Check a server definition before it is added."""
        ...

# ABOUTME: ControlService - the operations a front end (CLI, tray UI) calls.
# ABOUTME: Wraps the EngineContext; every mutation goes through the SyncCoordinator.
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from mcpctl.context import EngineContext
from mcpctl.errors import (
    ApplicationDisabledError,
    BackupFailedError,
    ConfigParseError,
    ServerNotFoundError,
    ServerValidationError,
)
from mcpctl.models import Application, BackupEntry, ConsolidatedServer, MCPServer, ServerRow
from mcpctl.registry import ServerRegistry
from mcpctl.scheduler import RefreshScheduler
from mcpctl.settings import Settings, clamp_refresh_interval
from mcpctl.sync import SyncCoordinator, SyncReport, SyncResult
from mcpctl.utils.fileio import atomic_write, read_bytes
from mcpctl.utils.validation import validate_server

logger = logging.getLogger(__name__)

# Bundle format written by export_config()
BUNDLE_VERSION = 1


@dataclass
class AppAvailability:
    """Whether one application can host a server."""
    name: str
    display_name: str
    detected: bool
    enabled: bool
    configured: bool


@dataclass
class ServerConfig:
    """Editable view of one server in one application.

    ABOUTME: available_applications is filled in by get_server_config() only
    """
    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    application: str | None = None
    available_applications: list[AppAvailability] = field(default_factory=list)

    def to_server(self, extra: dict[str, Any] | None = None) -> MCPServer:
        return MCPServer(
            name=self.name,
            command=self.command,
            args=list(self.args),
            env=dict(self.env),
            enabled=self.enabled,
            extra=dict(extra or {}),
        )


class ControlService:
    """Front-end facing operations.

    Applications switched off in settings are hidden from listings and
    rejected by mutating calls. With settings.auto_sync on, edits are written
    immediately; otherwise they stay pending until sync or the next tick.
    """

    def __init__(self, context: EngineContext, scheduler: RefreshScheduler | None = None) -> None:
        self.context = context
        self.scheduler = scheduler

    @property
    def coordinator(self) -> SyncCoordinator:
        return self.context.coordinator

    @property
    def registry(self) -> ServerRegistry:
        return self.context.registry

    @property
    def settings(self) -> Settings:
        return self.context.settings

    # Queries

    def managed_applications(self) -> list[str]:
        return [name for name in self.coordinator.adapters if self.settings.is_app_enabled(name)]

    def get_servers(self) -> list[ServerRow]:
        return self.registry.rows(self.managed_applications())

    def get_applications(self) -> list[Application]:
        return [app for app in self.coordinator.applications() if self.settings.is_app_enabled(app.name)]

    def get_consolidated(self) -> list[ConsolidatedServer]:
        managed = set(self.managed_applications())
        groups: list[ConsolidatedServer] = []
        for group in self.registry.consolidated():
            entries = {app: server for app, server in group.entries.items() if app in managed}
            if entries:
                groups.append(ConsolidatedServer(name=group.name, entries=entries))
        return groups

    def refresh(self) -> SyncReport:
        """Detect applications and re-read every managed one."""
        self.coordinator.detect_all()
        return self.coordinator.refresh_all(self.managed_applications())

    # Toggles

    def toggle_server(self, server_name: str, app_name: str, enabled: bool) -> SyncResult:
        """Enable or disable one server in one application.

        ABOUTME: Registry is updated first; a failed write is reported, not rolled back
        ABOUTME: Toggling to the current value touches neither disk nor status

        Raises:
            ServerNotFoundError: If the application has no such server
        """
        self._require_managed(app_name)
        with self.coordinator.editing(app_name):
            changed = self.registry.toggle(server_name, app_name, enabled)
            if changed:
                self.coordinator.mark_pending(app_name)
        if not changed:
            status = self.coordinator.application(app_name).sync_status
            return SyncResult(app_name, "success", status, "No change")
        return self._persist(app_name)

    def toggle_all(self, server_name: str, enabled: bool) -> SyncReport:
        """Set a server's flag in every managed application.

        ABOUTME: Undetected managed applications each get an error result
        ABOUTME: A failure in one application does not affect the others

        Raises:
            ServerNotFoundError: If no detected managed application has the server
        """
        report = SyncReport()
        holders = 0
        for app_name in self.managed_applications():
            if not self.coordinator.is_detected(app_name):
                app = self.coordinator.application(app_name)
                report.add_error(app_name, f"{app.display_name} not detected at {app.config_path}", app.sync_status)
                continue
            try:
                self.registry.server(app_name, server_name)
            except ServerNotFoundError:
                continue
            holders += 1
            report.add_result(self.toggle_server(server_name, app_name, enabled))

        if holders == 0:
            raise ServerNotFoundError(f"Server '{server_name}' not found in any managed application")
        return report

    # Sync

    def sync_application(self, app_name: str, force: bool = False) -> SyncResult:
        self._require_managed(app_name)
        return self.coordinator.sync_one(app_name, force=force)

    def sync_all(self, force: bool = False) -> SyncReport:
        return self.coordinator.sync_all(force=force, app_names=self.managed_applications())

    def resolve_conflict(self, app_name: str, strategy: str) -> SyncResult:
        self._require_managed(app_name)
        return self.coordinator.resolve_conflict(app_name, strategy)

    # Server editing

    def get_server_config(self, server_name: str, app_name: str) -> ServerConfig:
        """Return a server's fields plus where else it could live.

        Raises:
            ServerNotFoundError: If the application has no such server
        """
        self._require_managed(app_name)
        server = self.registry.server(app_name, server_name)
        group = self.registry.get(server_name)
        configured = set(group.applications) if group else set()

        availability = [
            AppAvailability(
                name=app.name,
                display_name=app.display_name,
                detected=app.detected,
                enabled=self.settings.is_app_enabled(app.name),
                configured=app.name in configured,
            )
            for app in self.coordinator.applications()
        ]
        return ServerConfig(
            name=server.name,
            command=server.command,
            args=list(server.args),
            env=dict(server.env),
            enabled=server.enabled,
            application=app_name,
            available_applications=availability,
        )

    def save_server_config(self, server_name: str, app_name: str, config: ServerConfig) -> SyncResult:
        """Replace a server's definition, renaming it when config.name differs.

        Raises:
            ServerNotFoundError: If the application has no such server
            ServerValidationError: If the new definition is invalid
        """
        self._require_managed(app_name)
        current = self.registry.server(app_name, server_name)
        server = config.to_server(extra=current.extra)
        others = [s.name for s in self.registry.servers_for(app_name) if s.name != server_name]
        self._validate(app_name, server, others)

        with self.coordinator.editing(app_name):
            self.registry.upsert(app_name, server, replace=server_name)
            self.coordinator.mark_pending(app_name)
        logger.info(f"{app_name}: updated server '{server_name}'")
        return self._persist(app_name)

    def create_server(self, app_name: str, config: ServerConfig) -> SyncResult:
        """Add a new server to one application.

        Raises:
            ServerValidationError: If the definition is invalid or the name is taken
        """
        self._require_managed(app_name)
        not_ready = self._require_loaded(app_name)
        if not_ready is not None:
            return not_ready

        server = config.to_server()
        self._validate(app_name, server, [s.name for s in self.registry.servers_for(app_name)])

        with self.coordinator.editing(app_name):
            self.registry.upsert(app_name, server)
            self.coordinator.mark_pending(app_name)
        logger.info(f"{app_name}: added server '{server.name}'")
        return self._persist(app_name)

    def delete_server(self, app_name: str, server_name: str) -> SyncResult:
        self._require_managed(app_name)
        with self.coordinator.editing(app_name):
            self.registry.remove(app_name, server_name)
            self.coordinator.mark_pending(app_name)
        logger.info(f"{app_name}: removed server '{server_name}'")
        return self._persist(app_name)

    # Backups

    def create_backup(self) -> list[BackupEntry]:
        """Snapshot every detected managed application.

        ABOUTME: Failures are logged and skipped
        """
        entries: list[BackupEntry] = []
        for app_name in self.managed_applications():
            adapter = self.coordinator.adapters[app_name]
            try:
                content = adapter.read_bytes()
                if content is None:
                    continue
                entries.append(
                    self.context.backups.snapshot(
                        app_name,
                        content,
                        suffix=adapter.config_path.suffix or ".json",
                        source_path=adapter.config_path,
                    )
                )
            except (BackupFailedError, OSError) as e:
                logger.error(f"{app_name}: manual backup failed: {e}")
        return entries

    def list_backups(self, app_name: str) -> list[BackupEntry]:
        return self.context.backups.list_backups(app_name)

    def restore_backup(self, app_name: str, entry: BackupEntry) -> SyncResult:
        """Restore a snapshot and re-read the application.

        Raises:
            BackupFailedError: If the snapshot is unreadable or corrupted
            ConfigParseError: If the snapshot is not a valid config
        """
        self._require_managed(app_name)
        return self.coordinator.restore(app_name, entry)

    # Import / export

    def export_config(self, path: Path) -> int:
        """Write every managed application's servers to a JSON bundle.

        Returns:
            Number of server entries exported
        """
        applications: dict[str, dict[str, Any]] = {}
        count = 0
        for app_name in self.managed_applications():
            if not self.registry.has_application(app_name):
                continue
            applications[app_name] = {
                server.name: _server_to_bundle(server) for server in self.registry.servers_for(app_name)
            }
            count += len(applications[app_name])

        bundle = {
            "version": BUNDLE_VERSION,
            "exported_at": datetime.now().isoformat(timespec="seconds"),
            "applications": applications,
        }
        atomic_write(path, (json.dumps(bundle, indent=2, ensure_ascii=False) + "\n").encode("utf-8"))
        logger.info(f"Exported {count} server entries to {path}")
        return count

    def import_config(self, path: Path, apps: Iterable[str] | None = None) -> SyncReport:
        """Merge a bundle's servers into detected applications and sync them.

        ABOUTME: Same-named servers are replaced, other servers are left alone
        ABOUTME: Validates all bundle servers first and imports nothing on errors

        Raises:
            ConfigParseError: If the bundle is missing or malformed
        """
        servers = _load_bundle(path)
        report = SyncReport()

        invalid = False
        for server in servers:
            error = validate_server(server)
            if error is not None and error.severity == "error":
                report.add_error("import", f"Server '{server.name}': {error.message}")
                invalid = True
        if invalid:
            return report

        targets = list(apps) if apps is not None else self.managed_applications()
        for app_name in targets:
            try:
                self._require_managed(app_name)
            except ApplicationDisabledError as e:
                report.add_error(app_name, str(e))
                continue
            not_ready = self._require_loaded(app_name)
            if not_ready is not None:
                report.add_result(not_ready)
                continue

            with self.coordinator.editing(app_name):
                for server in servers:
                    self.registry.upsert(app_name, server)
                self.coordinator.mark_pending(app_name)
            report.add_result(self.coordinator.sync_one(app_name))

        logger.info(f"Imported {len(servers)} server(s) from {path}")
        return report

    # Settings

    def get_settings(self) -> Settings:
        return dataclasses.replace(
            self.settings,
            enabled_apps=dict(self.settings.enabled_apps),
            extra=dict(self.settings.extra),
        )

    def save_settings(self, settings: Settings) -> None:
        """Persist settings and apply retention, backup location and interval now."""
        if settings.backup_retention < 1:
            raise ValueError(f"Backup retention must be at least 1, got {settings.backup_retention}")
        settings = dataclasses.replace(
            settings,
            refresh_interval=clamp_refresh_interval(settings.refresh_interval),
            enabled_apps=dict(settings.enabled_apps),
            extra=dict(settings.extra),
        )

        self.context.settings_store.save(settings)
        self.context.settings = settings

        backups = self.context.backups
        backups.backup_dir = settings.backup_dir() or self.context.config_dir / "backups"
        backups.retention = settings.backup_retention
        for app_name in self.coordinator.adapters:
            backups.prune(app_name)

        if self.scheduler is not None:
            self.scheduler.set_interval(settings.refresh_interval)

    # Internals

    def _persist(self, app_name: str) -> SyncResult:
        if self.settings.auto_sync:
            return self.coordinator.sync_one(app_name)
        return SyncResult(app_name, "success", self.coordinator.application(app_name).sync_status)

    def _validate(self, app_name: str, server: MCPServer, existing: Iterable[str]) -> None:
        error = self.coordinator.adapters[app_name].validate(server, existing)
        if error is not None and error.severity == "error":
            raise ServerValidationError(error)

    def _require_managed(self, app_name: str) -> None:
        # Raises UnknownApplicationError for unsupported names
        self.coordinator.application(app_name)
        if not self.settings.is_app_enabled(app_name):
            raise ApplicationDisabledError(f"{app_name} is disabled in settings")

    def _require_loaded(self, app_name: str) -> SyncResult | None:
        if self.coordinator.record(app_name) is None:
            app = self.coordinator.application(app_name)
            return SyncResult(
                app_name, "error", app.sync_status, f"{app.display_name} has not been read; refresh first"
            )
        return None


def _server_to_bundle(server: MCPServer) -> dict[str, Any]:
    entry: dict[str, Any] = {"command": server.command, "args": list(server.args)}
    if server.env:
        entry["env"] = dict(server.env)
    entry["enabled"] = server.enabled
    if server.extra:
        entry["extra"] = dict(server.extra)
    return entry


def _load_bundle(path: Path) -> list[MCPServer]:
    """Read an export bundle into a list of servers, first occurrence of each name wins."""
    content = read_bytes(path)
    if content is None:
        raise ConfigParseError("Bundle not found", path)
    try:
        data = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigParseError(f"Invalid bundle: {e}", path) from e

    if not isinstance(data, dict) or not isinstance(data.get("applications"), dict):
        raise ConfigParseError("Bundle must be an object with an 'applications' map", path)
    version = data.get("version")
    if not isinstance(version, int) or version > BUNDLE_VERSION:
        raise ConfigParseError(f"Unsupported bundle version: {version!r}", path)

    servers: dict[str, MCPServer] = {}
    for app_name, entries in data["applications"].items():
        if not isinstance(entries, dict):
            raise ConfigParseError(f"'{app_name}' must map server names to objects", path)
        for name, entry in entries.items():
            if name in servers:
                continue
            if not isinstance(entry, dict):
                raise ConfigParseError(f"Server '{name}' must be an object", path)
            enabled = entry.get("enabled", True)
            extra = entry.get("extra", {})
            if not isinstance(enabled, bool) or not isinstance(extra, dict):
                raise ConfigParseError(f"Server '{name}' has malformed fields", path)
            servers[name] = MCPServer(
                name=name,
                command=entry.get("command", ""),
                args=entry.get("args", []),
                env=entry.get("env", {}),
                enabled=enabled,
                extra=extra,
            )
    return list(servers.values())

# Sync orchestration for mcpctl
import dataclasses
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Iterator, Literal, Mapping

from mcpctl.backup import BackupManager
from mcpctl.errors import BackupFailedError, McpCtlError, UnknownApplicationError, WriteConflictError
from mcpctl.models import Application, ApplicationAdapter, BackupEntry, SyncRecord, SyncStatus
from mcpctl.registry import ServerRegistry
from mcpctl.utils.fileio import content_hash

logger = logging.getLogger(__name__)

SyncOutcome = Literal["success", "conflict", "error", "superseded"]

# Upper bound on concurrent reads during refresh_all()
MAX_READ_WORKERS = 8


@dataclass
class SyncResult:
    """Outcome of one read or write against one application.

    ABOUTME: status is the application's sync status after the operation
    ABOUTME: backup is the snapshot taken before a successful write
    """
    app_name: str
    outcome: SyncOutcome
    status: SyncStatus
    message: str | None = None
    backup: BackupEntry | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == "success"


@dataclass
class SyncReport:
    """Report from a multi-application operation.

    ABOUTME: Tracks success/failure across applications
    ABOUTME: Failures are recorded, never raised, so one app can't stop the rest
    """
    results: list[SyncResult] = field(default_factory=list)

    def add_result(self, result: SyncResult) -> None:
        self.results.append(result)

    def add_error(self, app_name: str, message: str, status: SyncStatus = "error") -> None:
        """Record an error that occurred outside the coordinator.

        ABOUTME: Errors are non-fatal, the operation continues
        """
        self.results.append(SyncResult(app_name=app_name, outcome="error", status=status, message=message))

    @property
    def succeeded(self) -> list[SyncResult]:
        return [r for r in self.results if r.outcome == "success"]

    @property
    def failed(self) -> list[SyncResult]:
        return [r for r in self.results if r.outcome == "error"]

    @property
    def conflicts(self) -> list[SyncResult]:
        return [r for r in self.results if r.outcome == "conflict"]

    @property
    def superseded(self) -> list[SyncResult]:
        return [r for r in self.results if r.outcome == "superseded"]

    @property
    def errors(self) -> list[str]:
        """Human-readable lines for every failed or conflicting result."""
        return [f"{r.app_name}: {r.message}" for r in self.results if r.outcome in ("error", "conflict")]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.conflicts

    def get(self, app_name: str) -> SyncResult | None:
        for result in self.results:
            if result.app_name == app_name:
                return result
        return None


class _AppSlot:
    """Per-application locks plus request and edit counters."""

    def __init__(self) -> None:
        # Serializes file access: reads, writes and restores
        self.lock = threading.Lock()
        # Held by in-memory edits and by background re-reads applying their result
        self.edit_lock = threading.RLock()
        # Incremented by every sync_one() call; a waiter whose ticket is stale is superseded
        self.generation = 0
        # Incremented by every mark_pending(); detects edits made during a write
        self.edits = 0


class SyncCoordinator:
    """Owns per-application sync state and serializes file access.

    ABOUTME: Reads of different applications run concurrently, writes per app are serialized
    ABOUTME: Every write is hash-checked against the last read, then backed up, then verified
    ABOUTME: Conflicts and errors stay until the caller refreshes or forces a write
    """

    def __init__(
        self,
        adapters: Mapping[str, ApplicationAdapter],
        registry: ServerRegistry,
        backups: BackupManager,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.adapters = dict(adapters)
        self.registry = registry
        self.backups = backups
        self._clock = clock
        self._state_lock = threading.Lock()
        self._slots: dict[str, _AppSlot] = {name: _AppSlot() for name in self.adapters}
        self._apps: dict[str, Application] = {}
        self._records: dict[str, SyncRecord] = {}

        for adapter in self.adapters.values():
            self.backups.register_adapter(adapter)

    # Detection and reads

    def detect_all(self) -> list[Application]:
        """Probe every adapter's config location.

        ABOUTME: Keeps existing sync state, only the detected flag is refreshed
        """
        for name, adapter in self.adapters.items():
            found = adapter.detect()
            with self._state_lock:
                state = self._apps.get(name)
                if state is None:
                    self._apps[name] = found
                else:
                    state.detected = found.detected
            logger.debug(f"{name}: {'detected' if found.detected else 'not found'} at {found.config_path}")
        return self.applications()

    def refresh(self, app_name: str) -> SyncResult:
        """Re-read one application from disk.

        ABOUTME: Discards in-memory edits and clears conflict/error state
        ABOUTME: A missing file leaves the app undetected; a parse error leaves it in error
        """
        self._adapter(app_name)
        with self._slots[app_name].lock:
            return self._reread(app_name)

    def refresh_all(self, app_names: Iterable[str] | None = None) -> SyncReport:
        """Re-read every application (or only app_names) concurrently."""
        report = SyncReport()
        names = list(self.adapters) if app_names is None else [self._adapter(n).name for n in app_names]
        if not names:
            return report
        workers = max(1, min(MAX_READ_WORKERS, len(names)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mcpctl-read") as pool:
            for result in pool.map(self.refresh, names):
                report.add_result(result)
        return report

    @contextmanager
    def editing(self, app_name: str) -> Iterator[None]:
        """Hold off background re-reads while the registry is edited.

        ABOUTME: Call mark_pending() inside the block when something changed
        """
        self._adapter(app_name)
        with self._slots[app_name].edit_lock:
            yield

    def mark_pending(self, app_name: str) -> SyncStatus:
        """Flag an application as holding unsaved in-memory edits.

        ABOUTME: A conflict stays a conflict until it is resolved
        """
        self._adapter(app_name)
        with self._state_lock:
            slot = self._slots[app_name]
            slot.edits += 1
            state = self._state(app_name)
            if state.sync_status != "conflict":
                state.sync_status = "pending"
                state.message = None
            state.server_count = len(self.registry.servers_for(app_name))
            return state.sync_status

    # Writes

    def sync_one(self, app_name: str, force: bool = False) -> SyncResult:
        """Persist the registry's servers for one application.

        ABOUTME: A request still waiting for the lock when a newer one arrives is superseded
        ABOUTME: force=True skips the conflict check (the backup is still taken)
        """
        adapter = self._adapter(app_name)
        slot = self._slots[app_name]
        with self._state_lock:
            slot.generation += 1
            ticket = slot.generation

        with slot.lock:
            if ticket != slot.generation:
                logger.debug(f"{app_name}: write request superseded by a newer one")
                return SyncResult(
                    app_name, "superseded", self._status(app_name), "Superseded by a newer write request"
                )
            return self._write(adapter, force)

    def sync_all(self, force: bool = False, app_names: Iterable[str] | None = None) -> SyncReport:
        """Write every detected or previously read application.

        ABOUTME: Never fails fast; each application gets its own result
        ABOUTME: app_names restricts the candidates
        """
        report = SyncReport()
        allowed = set(app_names) if app_names is not None else None
        for name in self.adapters:
            if allowed is not None and name not in allowed:
                continue
            with self._state_lock:
                state = self._apps.get(name)
                eligible = name in self._records or (state is not None and state.detected)
            if eligible:
                report.add_result(self.sync_one(name, force=force))
        return report

    def resolve_conflict(self, app_name: str, strategy: str) -> SyncResult:
        """Resolve a conflict by discarding local edits or overwriting the file.

        Raises:
            ValueError: If strategy is not "discard" or "overwrite"
        """
        if strategy == "discard":
            return self.refresh(app_name)
        if strategy == "overwrite":
            return self.sync_one(app_name, force=True)
        raise ValueError(f"Unknown conflict strategy '{strategy}' (expected 'discard' or 'overwrite')")

    def restore(self, app_name: str, entry: BackupEntry) -> SyncResult:
        """Replace the live file with a backup and re-read it.

        ABOUTME: Runs under the application's lock; queued writes are superseded

        Raises:
            BackupFailedError: If the snapshot is unreadable or corrupted
            ConfigParseError: If the snapshot is not a valid config
        """
        self._adapter(app_name)
        slot = self._slots[app_name]
        with self._state_lock:
            slot.generation += 1

        with slot.lock:
            self.backups.restore(app_name, entry)
            return self._reread(app_name)

    def poll(self, persist_pending: bool = True) -> SyncReport:
        """Run one periodic tick.

        ABOUTME: unsynced/synced apps are re-read when their file hash changed
        ABOUTME: pending apps are written when persist_pending is set
        ABOUTME: conflict/error apps are left for the user
        """
        report = SyncReport()
        for name in self.adapters:
            status = self._status(name)
            if status in ("conflict", "error"):
                continue
            if status == "pending":
                if persist_pending:
                    report.add_result(self.sync_one(name))
                continue

            result = self._poll_one(name)
            if result is not None:
                report.add_result(result)
        return report

    # State queries

    def application(self, app_name: str) -> Application:
        """Copy of one application's current state."""
        self._adapter(app_name)
        with self._state_lock:
            return dataclasses.replace(self._state(app_name))

    def applications(self) -> list[Application]:
        with self._state_lock:
            return [dataclasses.replace(self._state(name)) for name in self.adapters]

    def record(self, app_name: str) -> SyncRecord | None:
        with self._state_lock:
            return self._records.get(app_name)

    def is_detected(self, app_name: str) -> bool:
        with self._state_lock:
            state = self._apps.get(app_name)
            return state is not None and state.detected

    # Internals

    def _reread(self, app_name: str) -> SyncResult:
        # Caller holds the slot lock
        adapter = self.adapters[app_name]
        try:
            content = adapter.read_bytes()
        except (McpCtlError, OSError) as e:
            return self._drop(app_name, f"failed to read config: {e}", str(e))

        if content is None:
            with self._slots[app_name].edit_lock:
                self.registry.drop_application(app_name)
                with self._state_lock:
                    self._records.pop(app_name, None)
                    state = self._state(app_name)
                    state.detected = False
                    state.server_count = 0
                    state.sync_status = "unsynced"
                    state.message = None
            return SyncResult(app_name, "success", "unsynced", "Config file not found")

        return self._apply_read(app_name, content)

    def _apply_read(self, app_name: str, content: bytes, edits: int | None = None) -> SyncResult | None:
        """Parse content and make it the application's state.

        ABOUTME: With edits set, gives up (returns None) if the app was edited since
        ABOUTME: edits was sampled, leaving the in-memory servers as they are
        """
        # Caller holds the slot lock
        adapter = self.adapters[app_name]
        slot = self._slots[app_name]
        try:
            servers = adapter.parse(content)
        except McpCtlError as e:
            with slot.edit_lock:
                if edits is not None and not self._untouched(app_name, edits):
                    return None
                return self._drop(app_name, f"failed to read config: {e}", str(e))

        now = self._clock()
        digest = content_hash(content)
        with slot.edit_lock:
            if edits is not None and not self._untouched(app_name, edits):
                logger.debug(f"{app_name}: edited during re-read, keeping in-memory servers")
                return None
            self.registry.replace_application(app_name, servers)
            with self._state_lock:
                slot.edits = 0
                self._records[app_name] = SyncRecord(app_name=app_name, content_hash=digest, timestamp=now)
                state = self._state(app_name)
                state.detected = True
                state.server_count = len(servers)
                state.sync_status = "synced"
                state.last_sync = now
                state.message = None

        logger.debug(f"{app_name}: read {len(servers)} server(s)")
        return SyncResult(app_name, "success", "synced")

    def _poll_one(self, app_name: str) -> SyncResult | None:
        adapter = self.adapters[app_name]
        slot = self._slots[app_name]
        with slot.lock:
            with self._state_lock:
                if self._state(app_name).sync_status not in ("unsynced", "synced"):
                    return None
                record = self._records.get(app_name)
                edits = slot.edits

            try:
                content = adapter.read_bytes()
            except McpCtlError as e:
                logger.error(f"{app_name}: {e}")
                return self._fail(app_name, str(e))

            if content is None:
                if record is None:
                    return None
                # Known file vanished: surface it instead of forgetting the app
                message = f"Config file no longer exists: {adapter.config_path}"
                logger.error(f"{app_name}: {message}")
                return self._fail(app_name, message)

            if record is not None and content_hash(content) == record.content_hash:
                return None
            logger.info(f"{app_name}: config changed on disk, re-reading")
            return self._apply_read(app_name, content, edits=edits)

    def _untouched(self, app_name: str, edits: int) -> bool:
        # Caller holds the edit lock
        with self._state_lock:
            status = self._state(app_name).sync_status
            return self._slots[app_name].edits == edits and status in ("unsynced", "synced")

    def _drop(self, app_name: str, log_message: str, message: str) -> SyncResult:
        with self._slots[app_name].edit_lock:
            self.registry.drop_application(app_name)
            with self._state_lock:
                self._records.pop(app_name, None)
        logger.error(f"{app_name}: {log_message}")
        return self._fail(app_name, message)

    def _write(self, adapter: ApplicationAdapter, force: bool) -> SyncResult:
        app_name = adapter.name
        with self._state_lock:
            record = self._records.get(app_name)
            edits = self._slots[app_name].edits

        if record is None or not self.registry.has_application(app_name):
            return self._fail(app_name, f"{adapter.display_name} has not been read yet; refresh first")

        try:
            # ConfigNotFoundError if the file was deleted since it was read
            current = adapter.read_bytes(required=True)

            current_hash = content_hash(current)
            if current_hash != record.content_hash and not force:
                conflict = WriteConflictError(app_name, record.content_hash, current_hash)
                logger.warning(str(conflict))
                with self._state_lock:
                    state = self._state(app_name)
                    state.sync_status = "conflict"
                    state.message = str(conflict)
                return SyncResult(app_name, "conflict", "conflict", str(conflict))

            try:
                backup = self.backups.snapshot(
                    app_name,
                    current,
                    suffix=adapter.config_path.suffix or ".json",
                    source_path=adapter.config_path,
                )
            except BackupFailedError as e:
                logger.error(f"{app_name}: {e}; write aborted")
                return self._fail(app_name, f"Backup failed, write aborted: {e}")

            servers = self.registry.servers_for(app_name)
            adapter.write(servers, base=current)

            written = adapter.read_bytes()
            if written is None:
                return self._fail(app_name, "Config file disappeared after write")
            stored = adapter.parse(written)
            if [(s.name, s.enabled) for s in stored] != [(s.name, s.enabled) for s in servers]:
                return self._fail(app_name, "Verification failed: file content differs from what was written")
        except (McpCtlError, OSError, ValueError) as e:
            logger.error(f"{app_name}: sync failed: {e}")
            return self._fail(app_name, str(e))

        now = self._clock()
        with self._state_lock:
            self._records[app_name] = SyncRecord(
                app_name=app_name, content_hash=content_hash(written), timestamp=now
            )
            state = self._state(app_name)
            state.detected = True
            state.server_count = len(servers)
            state.last_sync = now
            state.message = None
            # Edits made while the write ran are not on disk yet
            state.sync_status = "synced" if self._slots[app_name].edits == edits else "pending"
            status = state.sync_status

        logger.info(f"{app_name}: synced {len(servers)} server(s)")
        return SyncResult(app_name, "success", status, backup=backup)

    def _fail(self, app_name: str, message: str) -> SyncResult:
        with self._state_lock:
            state = self._state(app_name)
            state.sync_status = "error"
            state.message = message
        return SyncResult(app_name, "error", "error", message)

    def _status(self, app_name: str) -> SyncStatus:
        with self._state_lock:
            return self._state(app_name).sync_status

    def _state(self, app_name: str) -> Application:
        # Caller holds _state_lock
        state = self._apps.get(app_name)
        if state is None:
            adapter = self.adapters[app_name]
            state = self._apps[app_name] = Application(
                name=app_name,
                display_name=adapter.display_name,
                config_path=adapter.config_path,
            )
        return state

    def _adapter(self, app_name: str) -> ApplicationAdapter:
        try:
            return self.adapters[app_name]
        except KeyError:
            raise UnknownApplicationError(f"Unknown application: {app_name}") from None

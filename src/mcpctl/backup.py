# ABOUTME: Backup manager for application configuration files.
# ABOUTME: Timestamped snapshots with sidecar metadata and per-application retention.
import json
import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Mapping

from mcpctl.errors import BackupFailedError, UnknownApplicationError
from mcpctl.models import ApplicationAdapter, BackupEntry
from mcpctl.utils.fileio import atomic_write, content_hash

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = 10

# Sidecar files sit next to each snapshot: {snapshot}.meta.json
META_SUFFIX = ".meta.json"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%f"
_APP_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def get_backup_dir() -> Path:
    """Get the default backup directory path.

    ABOUTME: Returns ~/.mcpctl/backups
    ABOUTME: Does not create the directory
    """
    return Path.home() / ".mcpctl" / "backups"


class BackupManager:
    """Snapshots config files before every write and enforces retention.

    ABOUTME: Layout: {backup_dir}/{app}/{app}_{YYYYmmddTHHMMSSffffff}{suffix}
    ABOUTME: Timestamps are strictly increasing per application
    ABOUTME: restore() re-validates content through the application's adapter
    """

    def __init__(
        self,
        backup_dir: Path | None = None,
        retention: int = DEFAULT_RETENTION,
        adapters: Mapping[str, ApplicationAdapter] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.backup_dir = backup_dir if backup_dir else get_backup_dir()
        self.retention = retention
        self._adapters = dict(adapters or {})
        self._clock = clock
        self._last_stamp: dict[str, datetime] = {}

    @property
    def retention(self) -> int:
        return self._retention

    @retention.setter
    def retention(self, value: int) -> None:
        if value < 1:
            raise ValueError(f"Backup retention must be at least 1, got {value}")
        self._retention = value

    def snapshot(
        self,
        app_name: str,
        content: bytes,
        suffix: str = ".json",
        source_path: Path | None = None,
    ) -> BackupEntry:
        """Copy content into a new timestamped backup.

        ABOUTME: Writes the snapshot and its sidecar atomically
        ABOUTME: Prunes backups beyond the retention count afterwards

        Raises:
            BackupFailedError: If either file cannot be written
        """
        if not _APP_NAME_PATTERN.match(app_name):
            raise BackupFailedError(f"Invalid application name for backup: {app_name!r}")

        timestamp = self._next_timestamp(app_name)
        app_dir = self.backup_dir / app_name
        backup_path = app_dir / f"{app_name}_{timestamp.strftime(TIMESTAMP_FORMAT)}{suffix}"
        digest = content_hash(content) or ""

        entry = BackupEntry(
            app_name=app_name,
            timestamp=timestamp,
            path=backup_path,
            content_hash=digest,
            source_path=source_path,
        )
        meta = {
            "app": app_name,
            "timestamp": timestamp.isoformat(),
            "source": str(source_path) if source_path else None,
            "sha256": digest,
        }

        try:
            atomic_write(backup_path, content)
            atomic_write(_meta_path(backup_path), (json.dumps(meta, indent=2) + "\n").encode("utf-8"))
        except OSError as e:
            raise BackupFailedError(f"Failed to back up {app_name}: {e}") from e

        self._last_stamp[app_name] = timestamp
        logger.info(f"Backup created: {backup_path}")

        self.prune(app_name)
        return entry

    def list_backups(self, app_name: str) -> list[BackupEntry]:
        """List backups for one application, oldest first.

        ABOUTME: Snapshots without a readable sidecar are ignored
        """
        app_dir = self.backup_dir / app_name
        if not app_dir.is_dir():
            return []

        entries: list[BackupEntry] = []
        for meta_path in app_dir.glob(f"*{META_SUFFIX}"):
            entry = self._load_entry(meta_path)
            if entry is not None and entry.app_name == app_name:
                entries.append(entry)

        entries.sort(key=lambda e: (e.timestamp, e.path.name))
        return entries

    def latest(self, app_name: str) -> BackupEntry | None:
        backups = self.list_backups(app_name)
        return backups[-1] if backups else None

    def prune(self, app_name: str) -> list[Path]:
        """Remove old backups, keeping only the most recent `retention`.

        ABOUTME: Logs warnings on errors but does not raise exceptions

        Returns:
            List of snapshot paths that were deleted
        """
        deleted: list[Path] = []
        backups = self.list_backups(app_name)
        excess = len(backups) - self.retention
        if excess <= 0:
            return deleted

        for entry in backups[:excess]:
            try:
                entry.path.unlink(missing_ok=True)
                _meta_path(entry.path).unlink(missing_ok=True)
                deleted.append(entry.path)
                logger.debug(f"Deleted old backup: {entry.path}")
            except OSError as e:
                logger.warning(f"Failed to delete old backup {entry.path}: {e}")

        return deleted

    def restore(self, app_name: str, entry: BackupEntry) -> None:
        """Replace the live config file with a backup.

        ABOUTME: Verifies the snapshot hash and parses it with the app's adapter first
        ABOUTME: Snapshots the current live file before replacing it

        Raises:
            UnknownApplicationError: If no adapter is registered for app_name
            BackupFailedError: If the backup is unreadable, for another app, or corrupted
            ConfigParseError: If the backup content is not a valid config
        """
        adapter = self._adapters.get(app_name)
        if adapter is None:
            raise UnknownApplicationError(f"No adapter registered for {app_name}")
        if entry.app_name != app_name:
            raise BackupFailedError(f"Backup belongs to {entry.app_name}, not {app_name}")

        try:
            content = entry.path.read_bytes()
        except OSError as e:
            raise BackupFailedError(f"Cannot read backup {entry.path}: {e}") from e

        if entry.content_hash and content_hash(content) != entry.content_hash:
            raise BackupFailedError(f"Backup integrity check failed: {entry.path}")

        # Raises ConfigParseError for invalid content
        adapter.parse(content)

        current = adapter.read_bytes()
        if current is not None:
            self.snapshot(app_name, current, suffix=entry.path.suffix, source_path=adapter.config_path)

        adapter.write_bytes(content)
        logger.info(f"Restored {adapter.config_path} from {entry.path}")

    def register_adapter(self, adapter: ApplicationAdapter) -> None:
        self._adapters[adapter.name] = adapter

    # Internals

    def _next_timestamp(self, app_name: str) -> datetime:
        now = self._clock()
        last = self._last_stamp.get(app_name)
        if last is None:
            latest = self.latest(app_name)
            last = latest.timestamp if latest else None
        if last is not None and now <= last:
            now = last + timedelta(microseconds=1)
        return now

    def _load_entry(self, meta_path: Path) -> BackupEntry | None:
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            timestamp = datetime.fromisoformat(meta["timestamp"])
            app_name = meta["app"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable backup metadata {meta_path}: {e}")
            return None

        snapshot_path = meta_path.with_name(meta_path.name[: -len(META_SUFFIX)])
        if not snapshot_path.exists():
            return None

        source = meta.get("source")
        return BackupEntry(
            app_name=app_name,
            timestamp=timestamp,
            path=snapshot_path,
            content_hash=meta.get("sha256") or "",
            source_path=Path(source) if source else None,
        )


def _meta_path(backup_path: Path) -> Path:
    return backup_path.with_name(backup_path.name + META_SUFFIX)

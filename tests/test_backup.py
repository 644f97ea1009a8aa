# ABOUTME: Tests for the backup manager.
# ABOUTME: Covers snapshot layout, retention pruning and verified restore.
import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from mcpctl.adapters.claude_desktop import ClaudeDesktopAdapter
from mcpctl.backup import BackupManager, get_backup_dir
from mcpctl.errors import BackupFailedError, ConfigParseError, UnknownApplicationError


class FrozenClock:
    """Clock that returns the same instant until advanced."""

    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now


def make_manager(tmp_path: Path, retention: int = 10, clock=None) -> tuple[BackupManager, ClaudeDesktopAdapter]:
    adapter = ClaudeDesktopAdapter(config_path=tmp_path / "claude_desktop_config.json")
    manager = BackupManager(
        backup_dir=tmp_path / "backups",
        retention=retention,
        adapters={adapter.name: adapter},
        clock=clock or datetime.now,
    )
    return manager, adapter


class TestGetBackupDir:
    """Tests for get_backup_dir function."""

    def test_backup_dir_location(self):
        """Test that backup dir is ~/.mcpctl/backups."""
        backup_dir = get_backup_dir()
        assert backup_dir.parent.name == ".mcpctl"
        assert backup_dir.name == "backups"
        assert backup_dir.is_absolute()


class TestSnapshot:
    """Tests for BackupManager.snapshot."""

    def test_layout_and_sidecar(self, tmp_path):
        manager, adapter = make_manager(tmp_path, clock=FrozenClock())

        entry = manager.snapshot("claude-desktop", b'{"a": 1}', source_path=adapter.config_path)

        assert entry.path == tmp_path / "backups" / "claude-desktop" / "claude-desktop_20240501T120000000000.json"
        assert entry.path.read_bytes() == b'{"a": 1}'

        meta = json.loads(Path(str(entry.path) + ".meta.json").read_text())
        assert meta["app"] == "claude-desktop"
        assert meta["timestamp"] == "2024-05-01T12:00:00"
        assert meta["source"] == str(adapter.config_path)
        assert meta["sha256"] == entry.content_hash

    def test_timestamps_strictly_increase(self, tmp_path):
        """Two snapshots in the same instant never collide."""
        manager, _ = make_manager(tmp_path, clock=FrozenClock())

        first = manager.snapshot("claude-desktop", b"1")
        second = manager.snapshot("claude-desktop", b"2")

        assert second.timestamp > first.timestamp
        assert first.path != second.path
        assert len(manager.list_backups("claude-desktop")) == 2

    def test_suffix(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        entry = manager.snapshot("codex-cli", b"x = 1\n", suffix=".toml")
        assert entry.path.suffix == ".toml"

    def test_rejects_path_like_app_name(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        with pytest.raises(BackupFailedError, match="Invalid application name"):
            manager.snapshot("../evil", b"x")

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "backups"
        blocker.write_text("not a directory")
        manager, _ = make_manager(tmp_path)

        with pytest.raises(BackupFailedError):
            manager.snapshot("claude-desktop", b"x")

    def test_retention_must_be_positive(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        with pytest.raises(ValueError, match="at least 1"):
            manager.retention = 0


class TestRetention:
    """Tests for pruning."""

    def test_keeps_newest(self, tmp_path):
        """N+2 snapshots with retention N leaves exactly the newest N."""
        clock = FrozenClock()
        manager, _ = make_manager(tmp_path, retention=3, clock=clock)

        entries = []
        for i in range(5):
            clock.now += timedelta(seconds=1)
            entries.append(manager.snapshot("claude-desktop", str(i).encode()))

        remaining = manager.list_backups("claude-desktop")
        assert [e.path for e in remaining] == [e.path for e in entries[2:]]
        assert not entries[0].path.exists()
        assert not Path(str(entries[0].path) + ".meta.json").exists()

    def test_prune_after_lowering_retention(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        for i in range(4):
            manager.snapshot("cursor", str(i).encode())

        manager.retention = 1
        deleted = manager.prune("cursor")

        assert len(deleted) == 3
        assert len(manager.list_backups("cursor")) == 1

    def test_list_ignores_broken_sidecars(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        manager.snapshot("cursor", b"ok")
        (tmp_path / "backups" / "cursor" / "junk.json.meta.json").write_text("{")

        assert len(manager.list_backups("cursor")) == 1

    def test_list_unknown_app(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        assert manager.list_backups("cursor") == []
        assert manager.latest("cursor") is None


class TestRestore:
    """Tests for restore."""

    def test_restore_replaces_live_file_and_backs_it_up(self, tmp_path):
        manager, adapter = make_manager(tmp_path)
        good = b'{"mcpServers": {"fs": {"command": "npx"}}}'
        entry = manager.snapshot("claude-desktop", good)
        adapter.config_path.write_bytes(b'{"mcpServers": {}}')

        manager.restore("claude-desktop", entry)

        assert adapter.config_path.read_bytes() == good
        backups = manager.list_backups("claude-desktop")
        assert len(backups) == 2
        assert backups[-1].path.read_bytes() == b'{"mcpServers": {}}'

    def test_restore_refuses_corrupted_backup(self, tmp_path):
        manager, adapter = make_manager(tmp_path)
        entry = manager.snapshot("claude-desktop", b'{"mcpServers": {}}')
        entry.path.write_bytes(b'{"mcpServers": {"x": {"command": "y"}}}')
        adapter.config_path.write_bytes(b"{}")

        with pytest.raises(BackupFailedError, match="integrity"):
            manager.restore("claude-desktop", entry)
        assert adapter.config_path.read_bytes() == b"{}"

    def test_restore_refuses_invalid_config(self, tmp_path):
        manager, adapter = make_manager(tmp_path)
        entry = manager.snapshot("claude-desktop", b"{broken")
        adapter.config_path.write_bytes(b"{}")

        with pytest.raises(ConfigParseError):
            manager.restore("claude-desktop", entry)
        assert adapter.config_path.read_bytes() == b"{}"

    def test_restore_requires_adapter(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        entry = manager.snapshot("cursor", b"{}")

        with pytest.raises(UnknownApplicationError):
            manager.restore("cursor", entry)

    def test_restore_rejects_other_apps_backup(self, tmp_path):
        manager, _ = make_manager(tmp_path)
        entry = manager.snapshot("cursor", b"{}")

        with pytest.raises(BackupFailedError, match="belongs to cursor"):
            manager.restore("claude-desktop", entry)

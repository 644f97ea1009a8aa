# ABOUTME: Tests for ControlService, the front-end facing operations.
# ABOUTME: Uses an EngineContext over real adapters pointed at tmp_path files.
import dataclasses
import json
from pathlib import Path

import pytest

from mcpctl.adapters import get_all_adapters
from mcpctl.context import EngineContext
from mcpctl.errors import (
    ApplicationDisabledError,
    ConfigParseError,
    ServerNotFoundError,
    ServerValidationError,
    UnknownApplicationError,
)
from mcpctl.scheduler import RefreshScheduler
from mcpctl.service import ControlService, ServerConfig
from mcpctl.settings import Settings

CLAUDE = {
    "mcpServers": {
        "filesystem": {"command": "npx", "args": ["-y", "fs"]},
        "weather": {"command": "uvx", "args": ["weather"], "timeout": 30},
    }
}
CURSOR = {"mcp": {"servers": {"filesystem": {"command": "npx", "args": ["-y", "fs"]}}}}


def make_service(tmp_path: Path, settings: Settings | None = None, with_cursor: bool = True) -> ControlService:
    paths = {
        "claude-desktop": tmp_path / "apps" / "claude_desktop_config.json",
        "cursor": tmp_path / "apps" / "cursor.json",
        "codex-cli": tmp_path / "apps" / "codex.toml",
    }
    paths["claude-desktop"].parent.mkdir(parents=True)
    paths["claude-desktop"].write_text(json.dumps(CLAUDE, indent=2))
    if with_cursor:
        paths["cursor"].write_text(json.dumps(CURSOR, indent=2))

    adapters = {name: adapter for name, adapter in get_all_adapters(paths).items() if name in paths}
    context = EngineContext.create(config_dir=tmp_path / "cfg", adapters=adapters, settings=settings)
    service = ControlService(context)
    service.refresh()
    return service


def read_json(service: ControlService, app: str) -> dict:
    return json.loads(service.coordinator.adapters[app].config_path.read_text())


class TestQueries:
    """Tests for listing operations."""

    def test_get_applications(self, tmp_path):
        service = make_service(tmp_path)
        apps = {a.name: a for a in service.get_applications()}

        assert set(apps) == {"claude-desktop", "cursor", "codex-cli"}
        assert apps["claude-desktop"].server_count == 2
        assert apps["codex-cli"].detected is False

    def test_disabled_apps_are_hidden(self, tmp_path):
        settings = Settings()
        settings.enabled_apps["cursor"] = False
        service = make_service(tmp_path, settings=settings)

        assert "cursor" not in {a.name for a in service.get_applications()}
        assert {r.application for r in service.get_servers()} == {"claude-desktop"}
        assert service.get_consolidated()[0].applications == ["claude-desktop"]

    def test_get_servers(self, tmp_path):
        rows = make_service(tmp_path).get_servers()
        assert [(r.server, r.application, r.enabled) for r in rows] == [
            ("filesystem", "claude-desktop", True),
            ("filesystem", "cursor", True),
            ("weather", "claude-desktop", True),
        ]

    def test_get_consolidated(self, tmp_path):
        groups = make_service(tmp_path).get_consolidated()
        assert [(g.name, g.applications) for g in groups] == [
            ("filesystem", ["claude-desktop", "cursor"]),
            ("weather", ["claude-desktop"]),
        ]


class TestToggle:
    """Tests for toggle_server and toggle_all."""

    def test_toggle_server_writes_file(self, tmp_path):
        service = make_service(tmp_path)

        result = service.toggle_server("weather", "claude-desktop", False)

        assert result.outcome == "success"
        assert result.status == "synced"
        assert read_json(service, "claude-desktop")["mcpServers"]["weather"] == {
            "command": "uvx",
            "args": ["weather"],
            "timeout": 30,
            "disabled": True,
        }

    def test_noop_toggle_touches_nothing(self, tmp_path):
        service = make_service(tmp_path)
        path = service.coordinator.adapters["claude-desktop"].config_path
        before = path.read_bytes()

        result = service.toggle_server("weather", "claude-desktop", True)

        assert result.outcome == "success"
        assert result.message == "No change"
        assert path.read_bytes() == before
        assert service.coordinator.application("claude-desktop").sync_status == "synced"
        assert service.list_backups("claude-desktop") == []

    def test_without_auto_sync_edit_stays_pending(self, tmp_path):
        service = make_service(tmp_path, settings=Settings(auto_sync=False))
        before = read_json(service, "claude-desktop")

        result = service.toggle_server("weather", "claude-desktop", False)

        assert result.status == "pending"
        assert read_json(service, "claude-desktop") == before
        assert service.sync_application("claude-desktop").outcome == "success"
        assert read_json(service, "claude-desktop")["mcpServers"]["weather"]["disabled"] is True

    def test_toggle_unknown_server(self, tmp_path):
        with pytest.raises(ServerNotFoundError):
            make_service(tmp_path).toggle_server("nope", "claude-desktop", False)

    def test_toggle_in_disabled_app(self, tmp_path):
        settings = Settings()
        settings.enabled_apps["cursor"] = False
        with pytest.raises(ApplicationDisabledError):
            make_service(tmp_path, settings=settings).toggle_server("filesystem", "cursor", False)

    def test_toggle_unknown_app(self, tmp_path):
        with pytest.raises(UnknownApplicationError):
            make_service(tmp_path).toggle_server("filesystem", "notepad", False)

    def test_toggle_all_with_missing_application(self, tmp_path):
        """Two holders succeed, the undetected app gets an error, writes are unaffected."""
        service = make_service(tmp_path)

        report = service.toggle_all("filesystem", False)

        outcomes = {r.app_name: r.outcome for r in report.results}
        assert outcomes == {"claude-desktop": "success", "cursor": "success", "codex-cli": "error"}
        assert "not detected" in report.get("codex-cli").message
        assert read_json(service, "claude-desktop")["mcpServers"]["filesystem"]["disabled"] is True
        assert read_json(service, "cursor")["mcp"]["servers"]["filesystem"]["disabled"] is True

    def test_toggle_all_unknown_server(self, tmp_path):
        with pytest.raises(ServerNotFoundError):
            make_service(tmp_path).toggle_all("nope", False)

    def test_toggle_after_external_edit_conflicts(self, tmp_path):
        service = make_service(tmp_path)
        path = service.coordinator.adapters["claude-desktop"].config_path
        path.write_text(json.dumps({"mcpServers": {"weather": {"command": "uvx"}}}))

        result = service.toggle_server("weather", "claude-desktop", False)

        assert result.outcome == "conflict"
        # The optimistic registry update is kept for the caller to decide on
        assert service.registry.server("claude-desktop", "weather").enabled is False
        assert service.resolve_conflict("claude-desktop", "discard").status == "synced"
        assert service.registry.server("claude-desktop", "weather").enabled is True


class TestServerEditing:
    """Tests for get/save/create/delete server."""

    def test_get_server_config(self, tmp_path):
        config = make_service(tmp_path).get_server_config("weather", "claude-desktop")

        assert config.name == "weather"
        assert config.command == "uvx"
        assert config.args == ["weather"]
        availability = {a.name: a for a in config.available_applications}
        assert availability["claude-desktop"].configured is True
        assert availability["cursor"].configured is False
        assert availability["cursor"].detected is True
        assert availability["codex-cli"].detected is False
        assert all(a.enabled for a in availability.values())

    def test_rename_keeps_position_and_extra(self, tmp_path):
        service = make_service(tmp_path)
        config = service.get_server_config("filesystem", "claude-desktop")
        config.name = "files"

        result = service.save_server_config("filesystem", "claude-desktop", config)

        assert result.outcome == "success"
        servers = read_json(service, "claude-desktop")["mcpServers"]
        assert list(servers) == ["files", "weather"]
        assert servers["weather"]["timeout"] == 30

    def test_save_keeps_unknown_keys(self, tmp_path):
        service = make_service(tmp_path)
        config = service.get_server_config("weather", "claude-desktop")
        config.args = ["weather", "--units", "metric"]

        service.save_server_config("weather", "claude-desktop", config)

        entry = read_json(service, "claude-desktop")["mcpServers"]["weather"]
        assert entry["args"] == ["weather", "--units", "metric"]
        assert entry["timeout"] == 30

    def test_save_rename_collision(self, tmp_path):
        service = make_service(tmp_path)
        config = service.get_server_config("weather", "claude-desktop")
        config.name = "filesystem"

        with pytest.raises(ServerValidationError, match="already exists"):
            service.save_server_config("weather", "claude-desktop", config)

    def test_create_server(self, tmp_path):
        service = make_service(tmp_path)

        result = service.create_server("cursor", ServerConfig(name="github", command="docker", env={"T": "x"}))

        assert result.outcome == "success"
        assert read_json(service, "cursor")["mcp"]["servers"]["github"] == {
            "command": "docker",
            "args": [],
            "env": {"T": "x"},
        }

    def test_create_server_requires_command(self, tmp_path):
        with pytest.raises(ServerValidationError, match="Missing launch command"):
            make_service(tmp_path).create_server("cursor", ServerConfig(name="github", command=""))

    def test_create_server_in_undetected_app(self, tmp_path):
        service = make_service(tmp_path)

        result = service.create_server("codex-cli", ServerConfig(name="github", command="docker"))

        assert result.outcome == "error"
        assert not service.registry.has_application("codex-cli")

    def test_delete_server(self, tmp_path):
        service = make_service(tmp_path)

        assert service.delete_server("claude-desktop", "weather").outcome == "success"
        assert list(read_json(service, "claude-desktop")["mcpServers"]) == ["filesystem"]


class TestBackups:
    """Tests for manual backups and restore."""

    def test_create_backup(self, tmp_path):
        service = make_service(tmp_path)

        entries = service.create_backup()

        assert sorted(e.app_name for e in entries) == ["claude-desktop", "cursor"]
        assert entries[0].path.is_relative_to(tmp_path / "cfg" / "backups")

    def test_restore_backup(self, tmp_path):
        service = make_service(tmp_path)
        service.toggle_server("weather", "claude-desktop", False)
        entry = service.list_backups("claude-desktop")[-1]

        result = service.restore_backup("claude-desktop", entry)

        assert result.status == "synced"
        assert read_json(service, "claude-desktop") == CLAUDE
        assert service.registry.server("claude-desktop", "weather").enabled is True


class TestImportExport:
    """Tests for bundle export and import."""

    def test_export(self, tmp_path):
        service = make_service(tmp_path)
        bundle_path = tmp_path / "bundle.json"

        count = service.export_config(bundle_path)

        bundle = json.loads(bundle_path.read_text())
        assert count == 3
        assert bundle["version"] == 1
        assert bundle["applications"]["claude-desktop"]["weather"] == {
            "command": "uvx",
            "args": ["weather"],
            "enabled": True,
            "extra": {"timeout": 30},
        }

    def test_import_into_one_application(self, tmp_path):
        service = make_service(tmp_path)
        bundle_path = tmp_path / "bundle.json"
        service.export_config(bundle_path)

        report = service.import_config(bundle_path, apps=["cursor"])

        assert report.ok
        servers = read_json(service, "cursor")["mcp"]["servers"]
        assert list(servers) == ["filesystem", "weather"]
        assert servers["weather"]["timeout"] == 30

    def test_import_to_undetected_app_reports_error(self, tmp_path):
        service = make_service(tmp_path)
        bundle_path = tmp_path / "bundle.json"
        service.export_config(bundle_path)

        report = service.import_config(bundle_path)

        outcomes = {r.app_name: r.outcome for r in report.results}
        assert outcomes == {"claude-desktop": "success", "cursor": "success", "codex-cli": "error"}

    def test_import_invalid_server_writes_nothing(self, tmp_path):
        service = make_service(tmp_path)
        before = read_json(service, "cursor")
        bundle_path = tmp_path / "bundle.json"
        bundle_path.write_text(json.dumps({
            "version": 1,
            "applications": {"x": {"bad": {"command": ""}}},
        }))

        report = service.import_config(bundle_path)

        assert not report.ok
        assert "Missing launch command" in report.errors[0]
        assert read_json(service, "cursor") == before

    def test_import_newer_bundle_version(self, tmp_path):
        bundle_path = tmp_path / "bundle.json"
        bundle_path.write_text(json.dumps({"version": 99, "applications": {}}))

        with pytest.raises(ConfigParseError, match="Unsupported bundle version"):
            make_service(tmp_path).import_config(bundle_path)

    def test_import_missing_bundle(self, tmp_path):
        with pytest.raises(ConfigParseError, match="not found"):
            make_service(tmp_path).import_config(tmp_path / "nope.json")


class TestSettings:
    """Tests for get_settings/save_settings."""

    def test_get_settings_is_a_copy(self, tmp_path):
        service = make_service(tmp_path)
        settings = service.get_settings()
        settings.enabled_apps["claude-desktop"] = False

        assert service.settings.enabled_apps["claude-desktop"] is True

    def test_save_settings_applies_immediately(self, tmp_path):
        service = make_service(tmp_path)
        scheduler = RefreshScheduler(service.coordinator, interval=10)
        service.scheduler = scheduler
        for _ in range(3):
            service.create_backup()

        settings = dataclasses.replace(service.get_settings(), backup_retention=1, refresh_interval=2)
        service.save_settings(settings)

        assert len(service.list_backups("claude-desktop")) == 1
        assert scheduler.interval == 5
        stored = json.loads((tmp_path / "cfg" / "settings.json").read_text())
        assert stored["backup_retention"] == 1
        assert stored["refresh_interval"] == 5

    def test_save_settings_rejects_zero_retention(self, tmp_path):
        service = make_service(tmp_path)
        with pytest.raises(ValueError):
            service.save_settings(Settings(backup_retention=0))

    def test_save_settings_leaves_argument_alone(self, tmp_path):
        service = make_service(tmp_path)
        settings = dataclasses.replace(service.get_settings(), refresh_interval=1000)

        service.save_settings(settings)

        assert settings.refresh_interval == 1000
        assert service.settings.refresh_interval == 300
        assert service.settings is not settings

# ABOUTME: Tests for the Zed adapter.
# ABOUTME: Covers nested and flat context_server entries and the non-inverted 'enabled' flag.
import json
from pathlib import Path

import pytest

from mcpctl.adapters.zed import ZedAdapter
from mcpctl.errors import ConfigParseError
from mcpctl.models import MCPServer


def write_settings(tmp_path: Path, servers: dict) -> Path:
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"theme": "One Dark", "context_servers": servers}, indent=2))
    return config


class TestZedRead:
    """Tests for reading context_servers."""

    def test_nested_command(self, tmp_path):
        config = write_settings(tmp_path, {
            "postgres": {
                "command": {"path": "npx", "args": ["-y", "pg"], "env": {"DB": "x"}},
                "settings": {"database_url": "postgres://"},
            }
        })

        servers, _ = ZedAdapter(config_path=config).read()

        assert servers == [
            MCPServer(
                name="postgres",
                command="npx",
                args=["-y", "pg"],
                env={"DB": "x"},
                extra={"settings": {"database_url": "postgres://"}},
            )
        ]

    def test_flat_command(self, tmp_path):
        config = write_settings(tmp_path, {"fs": {"command": "npx", "args": ["fs"]}})
        servers, _ = ZedAdapter(config_path=config).read()
        assert servers[0].command == "npx"
        assert servers[0].args == ["fs"]

    def test_enabled_false_means_disabled(self, tmp_path):
        config = write_settings(tmp_path, {"fs": {"command": {"path": "npx"}, "enabled": False}})
        servers, _ = ZedAdapter(config_path=config).read()
        assert servers[0].enabled is False

    def test_missing_path_raises(self, tmp_path):
        config = write_settings(tmp_path, {"fs": {"command": {"args": []}}})
        with pytest.raises(ConfigParseError, match="command.path"):
            ZedAdapter(config_path=config).read()


class TestZedWrite:
    """Tests for writing context_servers."""

    def test_new_server_uses_nested_form(self, tmp_path):
        config = write_settings(tmp_path, {})
        adapter = ZedAdapter(config_path=config)

        adapter.write([MCPServer(name="fs", command="npx", args=["fs"], enabled=False)])

        data = json.loads(config.read_text())
        assert data["theme"] == "One Dark"
        assert data["context_servers"]["fs"] == {
            "command": {"path": "npx", "args": ["fs"]},
            "enabled": False,
        }

    def test_round_trip_nested_keeps_extras(self, tmp_path):
        original = {
            "postgres": {
                "command": {"path": "npx", "args": ["pg"], "env": {}, "cwd": "/tmp"},
                "settings": {"x": 1},
            }
        }
        config = write_settings(tmp_path, original)
        adapter = ZedAdapter(config_path=config)

        servers, _ = adapter.read()
        adapter.write(servers)

        assert json.loads(config.read_text())["context_servers"] == original

    def test_flat_entry_stays_flat(self, tmp_path):
        config = write_settings(tmp_path, {"fs": {"command": "npx", "args": []}})
        adapter = ZedAdapter(config_path=config)

        servers, _ = adapter.read()
        adapter.write([MCPServer(name="fs", command="npx", enabled=False)])

        assert json.loads(config.read_text())["context_servers"]["fs"] == {
            "command": "npx",
            "args": [],
            "enabled": False,
        }
        assert servers[0].enabled is True

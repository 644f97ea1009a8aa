# Zed editor application adapter
from pathlib import Path
from typing import Any

from mcpctl.adapters.base import BaseAdapter, _ordered_like
from mcpctl.errors import ConfigParseError
from mcpctl.models import MCPServer
from mcpctl.utils.paths import get_xdg_config_home


class ZedAdapter(BaseAdapter):
    """Adapter for Zed (~/.config/zed/settings.json).

    ABOUTME: Servers live under 'context_servers'
    ABOUTME: Launch command is nested: "command": {"path", "args", "env"}
    ABOUTME: Flat entries ("command": "npx", "args": [...]) are read and kept flat
    ABOUTME: On/off state is stored as "enabled": false
    """

    app_name = "zed"
    app_display_name = "Zed"
    servers_path = ("context_servers",)
    flag_key = "enabled"
    flag_inverted = False

    def _get_default_path(self) -> Path:
        return get_xdg_config_home() / "zed" / "settings.json"

    def _entry_to_server(self, name: str, entry: Any) -> MCPServer:
        if not isinstance(entry, dict):
            raise ConfigParseError(f"Server '{name}' must be an object", self._config_path)

        command = entry.get("command")
        if not isinstance(command, dict):
            # Flat form shares the generic layout
            return super()._entry_to_server(name, entry)

        path = command.get("path")
        if not isinstance(path, str):
            raise ConfigParseError(f"Server '{name}' missing required 'command.path'", self._config_path)

        args, env = self._check_launch_fields(name, command.get("args", []), command.get("env", {}))
        extra = {key: value for key, value in entry.items() if key not in ("command", self.flag_key)}
        command_extra = {key: value for key, value in command.items() if key not in ("path", "args", "env")}
        if command_extra:
            extra["command"] = command_extra

        return MCPServer(
            name=name,
            command=path,
            args=args,
            env=env,
            enabled=self._read_flag(entry),
            extra=extra,
        )

    def _server_to_entry(self, server: MCPServer, previous: dict[str, Any] | None) -> dict[str, Any]:
        if previous is not None and not isinstance(previous.get("command"), dict):
            return super()._server_to_entry(server, previous)

        previous_command = previous.get("command") if previous else None
        command: dict[str, Any] = {"path": server.command, "args": list(server.args)}
        if server.env or (previous_command is not None and "env" in previous_command):
            command["env"] = dict(server.env)

        extra = dict(server.extra)
        command_extra = extra.pop("command", None)
        if isinstance(command_extra, dict):
            for key, value in command_extra.items():
                command.setdefault(key, value)

        fields: dict[str, Any] = {"command": _ordered_like(command, previous_command)}
        self._apply_flag(fields, server, previous)
        for key, value in extra.items():
            fields.setdefault(key, value)
        return _ordered_like(fields, previous)

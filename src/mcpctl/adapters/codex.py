# Codex CLI platform adapter
from pathlib import Path
from typing import Any

import tomli
import tomli_w

from mcpctl.adapters.base import BaseAdapter, decode_text
from mcpctl.errors import ConfigParseError, WriteError


class CodexAdapter(BaseAdapter):
    """Adapter for Codex CLI (~/.codex/config.toml).

    ABOUTME: Uses snake_case mcp_servers table (not mcpServers)
    ABOUTME: On/off state is stored as enabled = false
    ABOUTME: Reads with tomli, writes with tomli_w; TOML comments are not kept
    """

    app_name = "codex-cli"
    app_display_name = "Codex CLI"
    servers_path = ("mcp_servers",)
    flag_key = "enabled"
    flag_inverted = False

    def _get_default_path(self) -> Path:
        return Path.home() / ".codex" / "config.toml"

    @property
    def suffix(self) -> str:
        return self._config_path.suffix or ".toml"

    def _load_document(self, content: bytes) -> dict[str, Any]:
        text = decode_text(content, self._config_path)
        try:
            return tomli.loads(text)
        except tomli.TOMLDecodeError as e:
            raise ConfigParseError(f"Invalid TOML: {e}", self._config_path) from e

    def _dump_document(self, data: dict[str, Any]) -> bytes:
        # TOML has no null; tomli_w raises TypeError for None and other foreign values
        try:
            return tomli_w.dumps(data).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise WriteError(f"Cannot write TOML to {self._config_path}: {e}") from e

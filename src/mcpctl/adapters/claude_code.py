# Claude Code platform adapter
from pathlib import Path

from mcpctl.adapters.base import BaseAdapter


class ClaudeCodeAdapter(BaseAdapter):
    """Adapter for Claude Code (~/.claude.json).

    ABOUTME: The file also holds project history and auth state, all preserved
    """

    app_name = "claude-code"
    app_display_name = "Claude Code"

    def _get_default_path(self) -> Path:
        return Path.home() / ".claude.json"

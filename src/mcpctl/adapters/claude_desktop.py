# Claude Desktop application adapter
import sys
from pathlib import Path

from mcpctl.adapters.base import BaseAdapter
from mcpctl.utils.paths import get_config_base


class ClaudeDesktopAdapter(BaseAdapter):
    """Adapter for Claude Desktop (claude_desktop_config.json).

    ABOUTME: Servers live under 'mcpServers'
    ABOUTME: A disabled server carries "disabled": true
    """

    app_name = "claude-desktop"
    app_display_name = "Claude Desktop"

    def _get_default_path(self) -> Path:
        # Linux builds use a lowercase directory name
        folder = "claude" if sys.platform.startswith("linux") else "Claude"
        return get_config_base() / folder / "claude_desktop_config.json"

# Cursor application adapter
from pathlib import Path

from mcpctl.adapters.base import BaseAdapter
from mcpctl.utils.paths import get_config_base


class CursorAdapter(BaseAdapter):
    """Adapter for Cursor (User/settings.json).

    ABOUTME: Servers are nested under the 'mcp' object as 'servers'
    ABOUTME: Creates the 'mcp' object on first write if missing
    """

    app_name = "cursor"
    app_display_name = "Cursor"
    servers_path = ("mcp", "servers")

    def _get_default_path(self) -> Path:
        return get_config_base() / "Cursor" / "User" / "settings.json"

# Visual Studio Code application adapter
from pathlib import Path

from mcpctl.adapters.base import BaseAdapter
from mcpctl.utils.paths import get_config_base


class VSCodeAdapter(BaseAdapter):
    """Adapter for Visual Studio Code (User/settings.json).

    ABOUTME: Uses the single flat dotted key "mcp.servers", not a nested object
    """

    app_name = "vscode"
    app_display_name = "Visual Studio Code"
    servers_path = ("mcp.servers",)

    def _get_default_path(self) -> Path:
        base = get_config_base()
        # Prefer Insiders only when it is the one that exists
        stable = base / "Code" / "User" / "settings.json"
        insiders = base / "Code - Insiders" / "User" / "settings.json"
        if not stable.exists() and insiders.exists():
            return insiders
        return stable

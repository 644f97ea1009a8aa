# Gemini CLI platform adapter
from pathlib import Path

from mcpctl.adapters.base import BaseAdapter


class GeminiAdapter(BaseAdapter):
    """Adapter for Gemini CLI (~/.gemini/settings.json).

    ABOUTME: Preserves other settings like selectedAuthType, theme
    """

    app_name = "gemini-cli"
    app_display_name = "Gemini CLI"

    def _get_default_path(self) -> Path:
        return Path.home() / ".gemini" / "settings.json"

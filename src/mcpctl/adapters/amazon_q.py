# Amazon Q Developer application adapter
from pathlib import Path

from mcpctl.adapters.base import BaseAdapter


class AmazonQAdapter(BaseAdapter):
    """Adapter for Amazon Q Developer (~/.aws/amazonq/mcp.json)."""

    app_name = "amazon-q"
    app_display_name = "Amazon Q Developer"

    def _get_default_path(self) -> Path:
        return Path.home() / ".aws" / "amazonq" / "mcp.json"

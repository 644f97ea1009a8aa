# Application adapter registry
from pathlib import Path

from mcpctl.adapters.amazon_q import AmazonQAdapter
from mcpctl.adapters.base import BaseAdapter
from mcpctl.adapters.claude_code import ClaudeCodeAdapter
from mcpctl.adapters.claude_desktop import ClaudeDesktopAdapter
from mcpctl.adapters.codex import CodexAdapter
from mcpctl.adapters.cursor import CursorAdapter
from mcpctl.adapters.gemini import GeminiAdapter
from mcpctl.adapters.vscode import VSCodeAdapter
from mcpctl.adapters.zed import ZedAdapter
from mcpctl.errors import UnknownApplicationError
from mcpctl.models import ApplicationAdapter

# Static registry keyed by application name
ADAPTERS: dict[str, type[BaseAdapter]] = {
    ClaudeDesktopAdapter.app_name: ClaudeDesktopAdapter,
    ClaudeCodeAdapter.app_name: ClaudeCodeAdapter,
    CursorAdapter.app_name: CursorAdapter,
    VSCodeAdapter.app_name: VSCodeAdapter,
    ZedAdapter.app_name: ZedAdapter,
    AmazonQAdapter.app_name: AmazonQAdapter,
    GeminiAdapter.app_name: GeminiAdapter,
    CodexAdapter.app_name: CodexAdapter,
}

APPLICATION_NAMES: tuple[str, ...] = tuple(ADAPTERS)

__all__ = [
    "ApplicationAdapter",
    "BaseAdapter",
    "AmazonQAdapter",
    "ClaudeCodeAdapter",
    "ClaudeDesktopAdapter",
    "CodexAdapter",
    "CursorAdapter",
    "GeminiAdapter",
    "VSCodeAdapter",
    "ZedAdapter",
    "ADAPTERS",
    "APPLICATION_NAMES",
    "get_adapter",
    "get_all_adapters",
]


def get_adapter(app_name: str, config_path: Path | None = None) -> ApplicationAdapter:
    """Instantiate the adapter registered for app_name.

    Raises:
        UnknownApplicationError: If app_name is not a supported application
    """
    try:
        adapter_cls = ADAPTERS[app_name]
    except KeyError:
        raise UnknownApplicationError(f"Unknown application: {app_name}") from None
    return adapter_cls(config_path)


def get_all_adapters(config_paths: dict[str, Path] | None = None) -> dict[str, ApplicationAdapter]:
    """Instantiate every registered adapter, keyed by application name.

    ABOUTME: config_paths overrides individual locations (used by tests)
    """
    overrides = config_paths or {}
    return {name: adapter_cls(overrides.get(name)) for name, adapter_cls in ADAPTERS.items()}

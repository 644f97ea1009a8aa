# ABOUTME: Utility modules for mcpctl
# ABOUTME: Exports hashing, atomic write and OS path helpers

from mcpctl.utils.fileio import atomic_write, content_hash, read_bytes
from mcpctl.utils.paths import get_config_base, get_xdg_config_home

__all__ = [
    "atomic_write",
    "content_hash",
    "read_bytes",
    "get_config_base",
    "get_xdg_config_home",
]

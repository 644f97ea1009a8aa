# OS-specific base directories for application config files
import os
import sys
from pathlib import Path


def get_config_base() -> Path:
    """Get the per-user application config directory for the current OS.

    ABOUTME: macOS -> ~/Library/Application Support
    ABOUTME: Windows -> %APPDATA% (falls back to ~/AppData/Roaming)
    ABOUTME: Linux and others -> $XDG_CONFIG_HOME or ~/.config
    """
    if sys.platform == "darwin":
        return Path.home() / "Library/Application Support"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home() / "AppData/Roaming"))
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        return Path(xdg) if xdg else Path.home() / ".config"


def get_xdg_config_home() -> Path:
    """~/.config style directory, also used by some tools on macOS."""
    if sys.platform == "win32":
        return get_config_base()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else Path.home() / ".config"

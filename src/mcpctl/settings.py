# User preference storage for mcpctl
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mcpctl.adapters import APPLICATION_NAMES
from mcpctl.errors import ConfigParseError
from mcpctl.utils.fileio import atomic_write, read_bytes

logger = logging.getLogger(__name__)

# ABOUTME: Default config directory in user's home
CONFIG_DIR = Path.home() / ".mcpctl"

# ABOUTME: Settings document location (JSON format)
SETTINGS_FILE = CONFIG_DIR / "settings.json"

SETTINGS_VERSION = 1

MIN_REFRESH_INTERVAL = 5
MAX_REFRESH_INTERVAL = 300
DEFAULT_REFRESH_INTERVAL = 10

# Applications hidden until the user opts in
_DISABLED_BY_DEFAULT = frozenset({"zed"})


def default_enabled_apps() -> dict[str, bool]:
    return {name: name not in _DISABLED_BY_DEFAULT for name in APPLICATION_NAMES}


@dataclass
class Settings:
    """User preferences.

    ABOUTME: Every field has a default so older documents load cleanly
    ABOUTME: extra keeps keys written by newer versions so they survive a save
    """
    version: int = SETTINGS_VERSION
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    auto_sync: bool = True
    backup_location: str = ""
    backup_retention: int = 10
    theme: str = "system"
    log_level: str = "info"
    enabled_apps: dict[str, bool] = field(default_factory=default_enabled_apps)
    extra: dict[str, Any] = field(default_factory=dict)

    def is_app_enabled(self, app_name: str) -> bool:
        return self.enabled_apps.get(app_name, app_name not in _DISABLED_BY_DEFAULT)

    def backup_dir(self) -> Path | None:
        """Configured backup directory, or None for the default."""
        return Path(self.backup_location).expanduser() if self.backup_location else None

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        extra = data.pop("extra")
        return {**extra, **data}


def clamp_refresh_interval(seconds: int) -> int:
    """Clamp a refresh interval into the supported 5-300 second range."""
    return max(MIN_REFRESH_INTERVAL, min(MAX_REFRESH_INTERVAL, int(seconds)))


def get_config_dir() -> Path:
    """Return the mcpctl config directory (~/.mcpctl).

    ABOUTME: Directory may not exist yet - use ensure_config_dir() first
    """
    return CONFIG_DIR


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Create config directory if it doesn't exist.

    Returns:
        Path to config directory (guaranteed to exist)
    """
    directory = config_dir if config_dir else CONFIG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Merge a stored document over the defaults.

    ABOUTME: Missing fields take defaults, wrong-typed fields are ignored with a warning
    ABOUTME: enabled_apps is merged key by key rather than replaced
    ABOUTME: Out-of-range values are clamped
    """
    defaults = Settings()
    known = {f.name: f for f in dataclasses.fields(Settings) if f.name != "extra"}
    values: dict[str, Any] = {}
    extra: dict[str, Any] = {}

    for key, value in data.items():
        if key not in known:
            extra[key] = value
            continue
        expected = type(getattr(defaults, key))
        # bool is an int subclass; keep the two apart
        if isinstance(value, bool) != (expected is bool) or not isinstance(value, expected):
            logger.warning(f"Ignoring setting '{key}': expected {expected.__name__}, got {type(value).__name__}")
            continue
        values[key] = value

    enabled_apps = default_enabled_apps()
    for app_name, enabled in values.pop("enabled_apps", {}).items():
        if isinstance(enabled, bool):
            enabled_apps[app_name] = enabled

    settings = dataclasses.replace(defaults, **values, enabled_apps=enabled_apps, extra=extra)

    interval = clamp_refresh_interval(settings.refresh_interval)
    if interval != settings.refresh_interval:
        logger.warning(f"refresh_interval {settings.refresh_interval}s out of range, using {interval}s")
        settings.refresh_interval = interval
    if settings.backup_retention < 1:
        logger.warning(f"backup_retention {settings.backup_retention} too small, using 1")
        settings.backup_retention = 1

    if settings.version > SETTINGS_VERSION:
        logger.info(f"Settings written by a newer version ({settings.version}); unknown keys kept")
    return settings


class SettingsStore:
    """Loads and saves the single settings document.

    ABOUTME: save() always writes the full structure; callers read-modify-write
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path else SETTINGS_FILE

    def load(self) -> Settings:
        """Load settings merged with defaults.

        Raises:
            ConfigParseError: If the document exists but is not a JSON object
        """
        content = read_bytes(self.path)
        if content is None:
            logger.debug(f"No settings at {self.path}, using defaults")
            return Settings()

        try:
            data = json.loads(content.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigParseError(f"Invalid settings document: {e}", self.path) from e
        if not isinstance(data, dict):
            raise ConfigParseError("Settings document must be a JSON object", self.path)

        return settings_from_dict(data)

    def save(self, settings: Settings) -> None:
        data = settings.to_dict()
        data["version"] = max(settings.version, SETTINGS_VERSION)
        data["refresh_interval"] = clamp_refresh_interval(settings.refresh_interval)
        atomic_write(self.path, (json.dumps(data, indent=2) + "\n").encode("utf-8"))
        logger.info(f"Saved settings to {self.path}")

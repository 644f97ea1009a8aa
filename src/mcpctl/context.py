# Engine wiring: one object holding every long-lived component
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from mcpctl.adapters import get_all_adapters
from mcpctl.backup import BackupManager
from mcpctl.models import ApplicationAdapter
from mcpctl.registry import ServerRegistry
from mcpctl.settings import Settings, SettingsStore, get_config_dir
from mcpctl.sync import SyncCoordinator

logger = logging.getLogger(__name__)


@dataclass
class EngineContext:
    """Everything the service and the scheduler share.

    ABOUTME: Built once by create() and passed explicitly, there are no module globals
    """
    config_dir: Path
    settings_store: SettingsStore
    settings: Settings
    registry: ServerRegistry
    backups: BackupManager
    coordinator: SyncCoordinator

    @classmethod
    def create(
        cls,
        config_dir: Path | None = None,
        adapters: Mapping[str, ApplicationAdapter] | None = None,
        settings: Settings | None = None,
    ) -> "EngineContext":
        """Load settings and construct the engine.

        Args:
            config_dir: Directory for settings.json and backups/ (defaults to ~/.mcpctl)
            adapters: Adapter instances keyed by name (defaults to every supported application)
            settings: Pre-loaded settings; read from config_dir when omitted

        Raises:
            ConfigParseError: If settings.json exists but is invalid
        """
        directory = config_dir if config_dir else get_config_dir()
        store = SettingsStore(directory / "settings.json")
        if settings is None:
            settings = store.load()

        backup_dir = settings.backup_dir() or directory / "backups"
        registry = ServerRegistry()
        backups = BackupManager(backup_dir=backup_dir, retention=settings.backup_retention)
        coordinator = SyncCoordinator(
            adapters if adapters is not None else get_all_adapters(),
            registry,
            backups,
        )
        logger.debug(f"Engine ready: config={directory} backups={backup_dir}")
        return cls(
            config_dir=directory,
            settings_store=store,
            settings=settings,
            registry=registry,
            backups=backups,
            coordinator=coordinator,
        )

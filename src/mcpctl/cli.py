# CLI interface for mcpctl
import argparse
import logging
import sys
import time
from pathlib import Path

from mcpctl import __version__
from mcpctl.context import EngineContext
from mcpctl.errors import McpCtlError
from mcpctl.scheduler import RefreshScheduler
from mcpctl.service import ControlService, ServerConfig
from mcpctl.settings import Settings, settings_from_dict
from mcpctl.sync import SyncReport, SyncResult

logger = logging.getLogger(__name__)

# ABOUTME: Exit codes
# 0 = success, 1 = partial success, 2 = config error, 3 = fatal
EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_CONFIG_ERROR = 2
EXIT_FATAL = 3

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "info", verbose: bool = False) -> None:
    """Set up root logging once for the process.

    ABOUTME: --verbose wins over the log_level setting
    """
    name = "DEBUG" if verbose else level.upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT, force=True)


def build_service(args: argparse.Namespace) -> ControlService:
    """Create the engine, load every managed application and wrap it in a service."""
    config_dir = Path(args.config_dir).expanduser() if args.config_dir else None
    context = EngineContext.create(config_dir=config_dir)
    configure_logging(context.settings.log_level, args.verbose)
    service = ControlService(context)
    service.refresh()
    return service


def _print_result(result: SyncResult) -> None:
    line = f"  {result.app_name} - {result.outcome}"
    if result.message:
        line += f": {result.message}"
    print(line)


def _report_exit_code(report: SyncReport) -> int:
    for result in report.results:
        _print_result(result)
    print()
    if report.ok:
        print(f"Done: {len(report.succeeded)} application(s) updated")
        return EXIT_SUCCESS
    print(f"Done: {len(report.succeeded)} updated, {len(report.failed)} failed, {len(report.conflicts)} conflicted")
    return EXIT_PARTIAL


def _result_exit_code(result: SyncResult) -> int:
    _print_result(result)
    return EXIT_SUCCESS if result.ok else EXIT_PARTIAL


def _parse_pairs(value: str | None) -> dict[str, str]:
    """Parse comma-separated KEY=VALUE pairs."""
    pairs: dict[str, str] = {}
    if not value:
        return pairs
    for item in value.split(","):
        if "=" not in item:
            raise ValueError(f"Expected KEY=VALUE, got '{item}'")
        key, _, val = item.partition("=")
        pairs[key.strip()] = val.strip()
    return pairs


def cmd_apps(service: ControlService, args: argparse.Namespace) -> int:
    """List managed applications and their sync state."""
    print(f"mcpctl apps v{__version__}")
    print()
    for app in service.get_applications():
        marker = "detected" if app.detected else "not found"
        print(f"  {app.name} ({app.display_name}) - {marker}")
        print(f"    path: {app.config_path}")
        if app.detected:
            print(f"    servers: {app.server_count}, status: {app.sync_status}")
        if app.message:
            print(f"    message: {app.message}")
    return EXIT_SUCCESS


def cmd_servers(service: ControlService, args: argparse.Namespace) -> int:
    """Show the consolidated server view."""
    print(f"mcpctl servers v{__version__}")
    print()
    groups = service.get_consolidated()
    for group in groups:
        print(f"  {group.name}")
        for app_name, server in group.entries.items():
            state = "on" if server.enabled else "off"
            print(f"    {app_name}: {state}  {server.command} {' '.join(server.args)}".rstrip())
    print()
    print(f"Total: {len(groups)} server(s)")
    return EXIT_SUCCESS


def cmd_toggle(service: ControlService, args: argparse.Namespace) -> int:
    enabled = args.command == "enable"
    verb = "Enabling" if enabled else "Disabling"
    if args.app:
        print(f"{verb} '{args.name}' in {args.app}...")
        return _result_exit_code(service.toggle_server(args.name, args.app, enabled))
    print(f"{verb} '{args.name}' in every application...")
    return _report_exit_code(service.toggle_all(args.name, enabled))


def cmd_sync(service: ControlService, args: argparse.Namespace) -> int:
    if args.app:
        print(f"Syncing {args.app}...")
        return _result_exit_code(service.sync_application(args.app, force=args.force))
    print("Syncing all applications...")
    return _report_exit_code(service.sync_all(force=args.force))


def cmd_resolve(service: ControlService, args: argparse.Namespace) -> int:
    print(f"Resolving {args.app} ({args.strategy})...")
    return _result_exit_code(service.resolve_conflict(args.app, args.strategy))


def cmd_add(service: ControlService, args: argparse.Namespace) -> int:
    config = ServerConfig(
        name=args.name,
        command=args.cmd,
        args=[a.strip() for a in args.args.split(",")] if args.args else [],
        env=_parse_pairs(args.env),
        enabled=not args.disabled,
    )
    print(f"Adding server '{args.name}' to {args.app}...")
    return _result_exit_code(service.create_server(args.app, config))


def cmd_remove(service: ControlService, args: argparse.Namespace) -> int:
    print(f"Removing server '{args.name}' from {args.app}...")
    return _result_exit_code(service.delete_server(args.app, args.name))


def cmd_backup(service: ControlService, args: argparse.Namespace) -> int:
    entries = service.create_backup()
    for entry in entries:
        print(f"  {entry.app_name} -> {entry.path}")
    print()
    print(f"Created {len(entries)} backup(s)")
    return EXIT_SUCCESS


def cmd_backups(service: ControlService, args: argparse.Namespace) -> int:
    entries = service.list_backups(args.app)
    if not entries:
        print(f"No backups for {args.app}")
        return EXIT_SUCCESS
    for index, entry in enumerate(reversed(entries)):
        print(f"  [{index}] {entry.timestamp.isoformat(sep=' ', timespec='seconds')}  {entry.path.name}")
    return EXIT_SUCCESS


def cmd_restore(service: ControlService, args: argparse.Namespace) -> int:
    """Restore a backup; index 0 is the newest."""
    entries = list(reversed(service.list_backups(args.app)))
    if not entries:
        print(f"Error: no backups for {args.app}")
        return EXIT_CONFIG_ERROR
    if not 0 <= args.index < len(entries):
        print(f"Error: backup index must be between 0 and {len(entries) - 1}")
        return EXIT_CONFIG_ERROR

    entry = entries[args.index]
    print(f"Restoring {args.app} from {entry.path.name}...")
    return _result_exit_code(service.restore_backup(args.app, entry))


def cmd_export(service: ControlService, args: argparse.Namespace) -> int:
    count = service.export_config(Path(args.path))
    print(f"Exported {count} server entries to {args.path}")
    return EXIT_SUCCESS


def cmd_import(service: ControlService, args: argparse.Namespace) -> int:
    print(f"Importing servers from {args.path}...")
    return _report_exit_code(service.import_config(Path(args.path), apps=args.app or None))


def cmd_settings(service: ControlService, args: argparse.Namespace) -> int:
    """Show settings, or update them with KEY=VALUE pairs."""
    settings = service.get_settings()
    if args.set:
        settings = _apply_setting_updates(settings, args.set)
        service.save_settings(settings)
        print("Settings saved")
        print()

    for key, value in settings.to_dict().items():
        print(f"  {key}: {value}")
    return EXIT_SUCCESS


def _apply_setting_updates(settings: Settings, updates: list[str]) -> Settings:
    data = settings.to_dict()
    for item in updates:
        key, sep, raw = item.partition("=")
        if not sep:
            raise ValueError(f"Expected KEY=VALUE, got '{item}'")
        value: object = raw
        if raw.lower() in ("true", "false"):
            value = raw.lower() == "true"
        elif raw.isdigit():
            value = int(raw)

        if key.startswith("enabled_apps."):
            data["enabled_apps"][key.split(".", 1)[1]] = value
        else:
            data[key] = value
    return settings_from_dict(data)


def cmd_watch(service: ControlService, args: argparse.Namespace) -> int:
    """Run the refresh loop in the foreground until interrupted."""
    settings = service.settings
    interval = args.interval if args.interval else settings.refresh_interval
    scheduler = RefreshScheduler(service.coordinator, interval, auto_sync=lambda: service.settings.auto_sync)
    service.scheduler = scheduler
    print(f"Watching configuration files every {scheduler.interval}s (Ctrl+C to stop)")
    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        print()
    finally:
        scheduler.stop()
    return EXIT_SUCCESS


COMMANDS = {
    "apps": cmd_apps,
    "servers": cmd_servers,
    "enable": cmd_toggle,
    "disable": cmd_toggle,
    "sync": cmd_sync,
    "resolve": cmd_resolve,
    "add": cmd_add,
    "remove": cmd_remove,
    "backup": cmd_backup,
    "backups": cmd_backups,
    "restore": cmd_restore,
    "export": cmd_export,
    "import": cmd_import,
    "settings": cmd_settings,
    "watch": cmd_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpctl",
        description="Keep MCP server configurations in sync across AI assistant applications"
    )
    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"mcpctl v{__version__}"
    )
    parser.add_argument(
        "--config-dir",
        help="Directory holding settings.json and backups (default: ~/.mcpctl)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("apps", help="List applications and their sync status")
    subparsers.add_parser("servers", help="Show every server across applications")

    for name, help_text in (("enable", "Enable a server"), ("disable", "Disable a server")):
        toggle_parser = subparsers.add_parser(name, help=help_text)
        toggle_parser.add_argument("name", help="Server name")
        toggle_parser.add_argument("--app", help="Only this application (default: all)")

    sync_parser = subparsers.add_parser("sync", help="Write pending changes to disk")
    sync_parser.add_argument("app", nargs="?", help="Only this application")
    sync_parser.add_argument("--force", action="store_true", help="Overwrite files changed outside mcpctl")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a write conflict")
    resolve_parser.add_argument("app", help="Application in conflict")
    resolve_parser.add_argument("strategy", choices=["discard", "overwrite"], help="Keep disk or keep local edits")

    add_parser = subparsers.add_parser("add", help="Add a server to an application")
    add_parser.add_argument("app", help="Target application")
    add_parser.add_argument("name", help="Server name")
    add_parser.add_argument("--command", dest="cmd", required=True, help="Command to run")
    add_parser.add_argument("--args", help="Comma-separated arguments")
    add_parser.add_argument("--env", help="Comma-separated KEY=VALUE environment variables")
    add_parser.add_argument("--disabled", action="store_true", help="Add the server switched off")

    remove_parser = subparsers.add_parser("remove", help="Remove a server from an application")
    remove_parser.add_argument("app", help="Target application")
    remove_parser.add_argument("name", help="Server name")

    subparsers.add_parser("backup", help="Back up every detected application now")

    backups_parser = subparsers.add_parser("backups", help="List backups, newest first")
    backups_parser.add_argument("app", help="Application")

    restore_parser = subparsers.add_parser("restore", help="Restore a backup")
    restore_parser.add_argument("app", help="Application")
    restore_parser.add_argument("--index", type=int, default=0, help="Backup index from 'backups' (default: newest)")

    export_parser = subparsers.add_parser("export", help="Export servers to a JSON bundle")
    export_parser.add_argument("path", help="Bundle file to write")

    import_parser = subparsers.add_parser("import", help="Import servers from a JSON bundle")
    import_parser.add_argument("path", help="Bundle file to read")
    import_parser.add_argument("--app", action="append", help="Target application (repeatable)")

    settings_parser = subparsers.add_parser("settings", help="Show or change settings")
    settings_parser.add_argument("--set", action="append", metavar="KEY=VALUE", help="Update a setting (repeatable)")

    watch_parser = subparsers.add_parser("watch", help="Poll configuration files until interrupted")
    watch_parser.add_argument("--interval", type=int, help="Seconds between polls (5-300)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    ABOUTME: Parses args and dispatches to appropriate command
    ABOUTME: Returns exit code for sys.exit()
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        # No command specified, show help
        parser.print_help()
        return EXIT_SUCCESS

    try:
        service = build_service(args)
        return handler(service, args)
    except (McpCtlError, ValueError) as e:
        print(f"Error: {e}")
        return EXIT_CONFIG_ERROR
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"Fatal error: {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())

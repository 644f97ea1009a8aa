# Consolidated cross-application server registry
import dataclasses
import logging
import threading
from typing import Iterable, Mapping, Sequence

from mcpctl.errors import ServerNotFoundError
from mcpctl.models import ConsolidatedServer, MCPServer, ServerRow

logger = logging.getLogger(__name__)


def consolidate(servers_by_app: Mapping[str, Sequence[MCPServer]]) -> list[ConsolidatedServer]:
    """Group per-application servers by server name.

    ABOUTME: Output is sorted by server name, entries by application name
    ABOUTME: Returns new objects (doesn't mutate inputs)

    Examples:
        >>> groups = consolidate({
        ...     "cursor": [MCPServer(name="fs", command="npx")],
        ...     "claude-desktop": [MCPServer(name="fs", command="npx")],
        ... })
        >>> [(g.name, g.applications) for g in groups]
        [('fs', ['claude-desktop', 'cursor'])]
    """
    records = sorted(
        ((server.name, app_name, server) for app_name, servers in servers_by_app.items() for server in servers),
        key=lambda item: (item[0], item[1]),
    )

    result: list[ConsolidatedServer] = []
    for name, app_name, server in records:
        if not result or result[-1].name != name:
            result.append(ConsolidatedServer(name=name))
        result[-1].entries[app_name] = server
    return result


class ServerRegistry:
    """Holds every application's servers and the consolidated view.

    Per-application lists keep file order so writes don't reshuffle entries.
    The consolidated view is derived and rebuilt after every change. All
    methods are safe to call from the scheduler thread and user actions.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._servers: dict[str, dict[str, MCPServer]] = {}
        self._consolidated: list[ConsolidatedServer] = []

    def rebuild(self, servers_by_app: Mapping[str, Sequence[MCPServer]]) -> list[ConsolidatedServer]:
        """Replace all per-application data and regroup.

        Raises:
            ValueError: If one application's sequence repeats a server name
        """
        fresh = {app_name: self._index(app_name, servers) for app_name, servers in servers_by_app.items()}
        with self._lock:
            self._servers = fresh
            self._consolidate()
            return list(self._consolidated)

    def replace_application(self, app_name: str, servers: Sequence[MCPServer]) -> None:
        indexed = self._index(app_name, servers)
        with self._lock:
            self._servers[app_name] = indexed
            self._consolidate()

    def drop_application(self, app_name: str) -> None:
        with self._lock:
            if self._servers.pop(app_name, None) is not None:
                self._consolidate()

    def toggle(self, server_name: str, app_name: str, enabled: bool) -> bool:
        """Set the enabled flag of one application's server.

        ABOUTME: Returns False without changing anything if already at the value

        Raises:
            ServerNotFoundError: If the application has no server of that name
        """
        with self._lock:
            current = self._require(app_name, server_name)
            if current.enabled == enabled:
                return False
            self._servers[app_name][server_name] = dataclasses.replace(current, enabled=enabled)
            self._consolidate()
        logger.debug(f"{app_name}: {server_name} -> {'enabled' if enabled else 'disabled'}")
        return True

    def toggle_all(self, server_name: str, enabled: bool) -> list[str]:
        """Set the flag in every application holding server_name.

        Returns:
            Names of the applications whose value actually changed

        Raises:
            ServerNotFoundError: If no application has the server
        """
        with self._lock:
            holders = [app for app, servers in sorted(self._servers.items()) if server_name in servers]
            if not holders:
                raise ServerNotFoundError(f"Server '{server_name}' not found in any application")
            return [app for app in holders if self.toggle(server_name, app, enabled)]

    def upsert(self, app_name: str, server: MCPServer, replace: str | None = None) -> None:
        """Add or replace a server in one application.

        ABOUTME: replace names an existing entry to swap out (supports renames)
        ABOUTME: A replaced entry keeps its position; new entries go last
        """
        with self._lock:
            servers = self._servers.setdefault(app_name, {})
            target = replace if replace is not None else server.name
            if target in servers:
                servers = {
                    (server.name if name == target else name): (server if name == target else existing)
                    for name, existing in servers.items()
                    if not (name == server.name and name != target)
                }
            else:
                servers = dict(servers)
                servers[server.name] = server
            self._servers[app_name] = servers
            self._consolidate()

    def remove(self, app_name: str, server_name: str) -> MCPServer:
        with self._lock:
            removed = self._require(app_name, server_name)
            del self._servers[app_name][server_name]
            self._consolidate()
            return removed

    # Queries

    def consolidated(self) -> list[ConsolidatedServer]:
        with self._lock:
            return list(self._consolidated)

    def get(self, server_name: str) -> ConsolidatedServer | None:
        with self._lock:
            for group in self._consolidated:
                if group.name == server_name:
                    return group
            return None

    def servers_for(self, app_name: str) -> list[MCPServer]:
        with self._lock:
            return list(self._servers.get(app_name, {}).values())

    def server(self, app_name: str, server_name: str) -> MCPServer:
        with self._lock:
            return self._require(app_name, server_name)

    def has_application(self, app_name: str) -> bool:
        with self._lock:
            return app_name in self._servers

    def applications(self) -> list[str]:
        with self._lock:
            return sorted(self._servers)

    def rows(self, app_names: Iterable[str] | None = None) -> list[ServerRow]:
        """Flatten the consolidated view into (server, application, enabled) rows."""
        allowed = set(app_names) if app_names is not None else None
        with self._lock:
            return [
                ServerRow(server=group.name, application=app_name, enabled=server.enabled)
                for group in self._consolidated
                for app_name, server in group.entries.items()
                if allowed is None or app_name in allowed
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._consolidated)

    # Internals

    def _index(self, app_name: str, servers: Sequence[MCPServer]) -> dict[str, MCPServer]:
        indexed: dict[str, MCPServer] = {}
        for server in servers:
            if server.name in indexed:
                raise ValueError(f"{app_name}: duplicate server name '{server.name}'")
            indexed[server.name] = server
        return indexed

    def _require(self, app_name: str, server_name: str) -> MCPServer:
        try:
            return self._servers[app_name][server_name]
        except KeyError:
            raise ServerNotFoundError(f"Server '{server_name}' not found in {app_name}") from None

    def _consolidate(self) -> None:
        self._consolidated = consolidate(
            {app_name: list(servers.values()) for app_name, servers in self._servers.items()}
        )

# Application adapter base classes
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

from mcpctl.errors import ConfigNotFoundError, ConfigParseError, ValidationError
from mcpctl.models import Application, MCPServer
from mcpctl.utils.fileio import atomic_write, content_hash, read_bytes
from mcpctl.utils.validation import validate_server

logger = logging.getLogger(__name__)


class _JsonObject(dict):
    """dict that remembers keys which appeared more than once in the source."""
    duplicates: tuple[str, ...] = ()


def _object_pairs_hook(pairs: list[tuple[str, Any]]) -> _JsonObject:
    obj = _JsonObject()
    duplicates: list[str] = []
    for key, value in pairs:
        if key in obj:
            duplicates.append(key)
        obj[key] = value
    if duplicates:
        obj.duplicates = tuple(duplicates)
    return obj


def decode_text(content: bytes, path: Path | None = None) -> str:
    """Decode config bytes as UTF-8, tolerating a leading BOM."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ConfigParseError(f"File is not valid UTF-8: {e}", path) from e


def load_json_document(content: bytes, path: Path | None = None) -> dict[str, Any]:
    """Parse a JSON config document.

    ABOUTME: Empty or whitespace-only files are treated as an empty document
    ABOUTME: Raises ConfigParseError for invalid JSON or a non-object top level
    """
    text = decode_text(content, path)
    if not text.strip():
        return {}

    try:
        data = json.loads(text, object_pairs_hook=_object_pairs_hook)
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"Invalid JSON: {e}", path) from e

    if not isinstance(data, dict):
        raise ConfigParseError("Top-level JSON value must be an object", path)
    return data


def dump_json_document(data: dict[str, Any]) -> bytes:
    """Serialize a JSON document with 2-space indentation and a trailing newline."""
    return (json.dumps(data, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


class BaseAdapter:
    """Shared read/render/write machinery for application adapters.

    ABOUTME: Subclasses set the class attributes below and _get_default_path()
    ABOUTME: Document format is delegated to _load_document/_dump_document
    ABOUTME: Unknown top-level and per-server keys always round-trip
    """

    app_name: str = ""
    app_display_name: str = ""
    # Keys leading from the document root to the server map
    servers_path: tuple[str, ...] = ("mcpServers",)
    # Per-server key holding the on/off state and whether it is stored inverted
    flag_key: str = "disabled"
    flag_inverted: bool = True

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize adapter with optional custom config path.

        ABOUTME: Defaults to the application's well-known location if not provided
        """
        self._config_path = config_path if config_path else self._get_default_path()

    def _get_default_path(self) -> Path:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return self.app_name

    @property
    def display_name(self) -> str:
        return self.app_display_name

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def suffix(self) -> str:
        return self._config_path.suffix or ".json"

    def detect(self) -> Application:
        """Probe the config location.

        ABOUTME: A missing file is not an error, the application is just undetected
        """
        detected = self._config_path.is_file()
        return Application(
            name=self.name,
            display_name=self.display_name,
            config_path=self._config_path,
            detected=detected,
        )

    def read_bytes(self, required: bool = False) -> bytes | None:
        """Raw file content, or None if the file is absent.

        ABOUTME: required=True raises ConfigNotFoundError instead of returning None
        """
        content = read_bytes(self._config_path)
        if content is None and required:
            raise ConfigNotFoundError(f"Config file no longer exists: {self._config_path}")
        return content

    def read(self) -> tuple[list[MCPServer], str | None]:
        """Load servers from the config file.

        ABOUTME: Returns ([], None) if the file doesn't exist
        ABOUTME: Raises ConfigParseError if it exists but is malformed
        """
        content = self.read_bytes()
        if content is None:
            return [], None
        return self.parse(content), content_hash(content)

    def parse(self, content: bytes) -> list[MCPServer]:
        data = self._load_document(content)
        section = self._get_section(data)
        if section is None:
            return []

        duplicates = getattr(section, "duplicates", ())
        if duplicates:
            names = ", ".join(sorted(set(duplicates)))
            raise ConfigParseError(f"Duplicate server name(s): {names}", self._config_path)

        return [self._entry_to_server(name, entry) for name, entry in section.items()]

    def render(self, servers: Sequence[MCPServer], base: bytes | None = None) -> bytes:
        """Serialize servers into the existing document.

        ABOUTME: Replaces only the server map, everything else in base is kept
        ABOUTME: Entries keep the key order they had in base
        """
        data = self._load_document(base) if base else {}
        parent = self._ensure_section_parent(data)
        key = self.servers_path[-1]
        previous = parent.get(key)
        if not isinstance(previous, dict):
            previous = {}

        names = [server.name for server in servers]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate server names for {self.name}")

        rendered: dict[str, Any] = {}
        for server in servers:
            old_entry = previous.get(server.name)
            rendered[server.name] = self._server_to_entry(
                server, old_entry if isinstance(old_entry, dict) else None
            )
        parent[key] = rendered
        return self._dump_document(data)

    def write(self, servers: Sequence[MCPServer], base: bytes | None = None) -> None:
        """Persist servers atomically.

        ABOUTME: Merges into base, or into the current file content if base is None
        """
        if base is None:
            base = self.read_bytes()
        self.write_bytes(self.render(servers, base))
        logger.info(f"Wrote {len(servers)} server(s) to {self._config_path}")

    def write_bytes(self, content: bytes) -> None:
        atomic_write(self._config_path, content)

    def validate(self, server: MCPServer, existing: Iterable[str] = ()) -> ValidationError | None:
        return validate_server(server, existing)

    # Document format hooks

    def _load_document(self, content: bytes) -> dict[str, Any]:
        return load_json_document(content, self._config_path)

    def _dump_document(self, data: dict[str, Any]) -> bytes:
        return dump_json_document(data)

    # Section navigation

    def _get_section(self, data: dict[str, Any]) -> dict[str, Any] | None:
        node: Any = data
        for depth, key in enumerate(self.servers_path):
            if key not in node:
                return None
            node = node[key]
            if not isinstance(node, dict):
                where = ".".join(self.servers_path[: depth + 1])
                raise ConfigParseError(f"'{where}' must be an object", self._config_path)
        return node

    def _ensure_section_parent(self, data: dict[str, Any]) -> dict[str, Any]:
        node = data
        for key in self.servers_path[:-1]:
            child = node.get(key)
            if child is None:
                child = node[key] = {}
            elif not isinstance(child, dict):
                raise ConfigParseError(f"'{key}' must be an object", self._config_path)
            node = child
        return node

    # Entry conversion

    def _entry_to_server(self, name: str, entry: Any) -> MCPServer:
        if not isinstance(entry, dict):
            raise ConfigParseError(f"Server '{name}' must be an object", self._config_path)

        command = entry.get("command")
        if not isinstance(command, str):
            raise ConfigParseError(
                f"Server '{name}' missing required 'command' field", self._config_path
            )

        args, env = self._check_launch_fields(name, entry.get("args", []), entry.get("env", {}))
        extra = {
            key: value
            for key, value in entry.items()
            if key not in ("command", "args", "env", self.flag_key)
        }
        return MCPServer(
            name=name,
            command=command,
            args=args,
            env=env,
            enabled=self._read_flag(entry),
            extra=extra,
        )

    def _check_launch_fields(self, name: str, args: Any, env: Any) -> tuple[list[str], dict[str, str]]:
        if args is None:
            args = []
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ConfigParseError(f"Server '{name}': 'args' must be a list of strings", self._config_path)

        if env is None:
            env = {}
        if not isinstance(env, dict) or not all(isinstance(v, str) for v in env.values()):
            raise ConfigParseError(
                f"Server '{name}': 'env' must map names to strings", self._config_path
            )
        return list(args), dict(env)

    def _read_flag(self, entry: dict[str, Any]) -> bool:
        value = entry.get(self.flag_key, not self.flag_inverted)
        if not isinstance(value, bool):
            raise ConfigParseError(f"'{self.flag_key}' must be true or false", self._config_path)
        return not value if self.flag_inverted else value

    def _apply_flag(self, fields: dict[str, Any], server: MCPServer, previous: dict[str, Any] | None) -> None:
        stored = not server.enabled if self.flag_inverted else server.enabled
        # Only write the flag when it differs from the default or was already present
        if server.enabled is False or (previous is not None and self.flag_key in previous):
            fields[self.flag_key] = stored

    def _server_to_entry(self, server: MCPServer, previous: dict[str, Any] | None) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "command": server.command,
            "args": list(server.args),
        }
        if server.env or (previous is not None and "env" in previous):
            fields["env"] = dict(server.env)
        self._apply_flag(fields, server, previous)
        for key, value in server.extra.items():
            fields.setdefault(key, value)
        return _ordered_like(fields, previous)


def _ordered_like(fields: dict[str, Any], previous: dict[str, Any] | None) -> dict[str, Any]:
    """Reorder fields to follow the key order of the previous entry."""
    if not previous:
        return fields
    ordered = {key: fields[key] for key in previous if key in fields}
    for key, value in fields.items():
        ordered.setdefault(key, value)
    return ordered

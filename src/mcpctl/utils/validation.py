# ABOUTME: Validation utilities for MCP server definitions
# ABOUTME: Validators return ValidationError records instead of raising
from typing import Iterable

from mcpctl.errors import ValidationError
from mcpctl.models import MCPServer


def validate_server(server: MCPServer, existing: Iterable[str] = ()) -> ValidationError | None:
    """Validate a server definition before it is added to an application.

    ABOUTME: Rejects an empty name, a missing launch command and a name collision
    ABOUTME: Checks argument and environment value types
    ABOUTME: Does not interpret what the command does

    Args:
        server: MCPServer instance to validate
        existing: Names already present in the target application

    Returns:
        The first ValidationError found, or None if the server is valid

    Examples:
        >>> validate_server(MCPServer(name="fs", command="npx"))
        >>> validate_server(MCPServer(name="fs", command=""))
        ValidationError(server_name='fs', message='Missing launch command', severity='error')
    """
    name = server.name
    if not name or not name.strip():
        return ValidationError(server_name=name, message="Server name must not be empty")

    if not isinstance(server.command, str) or not server.command.strip():
        return ValidationError(server_name=name, message="Missing launch command")

    if not isinstance(server.args, list) or not all(isinstance(arg, str) for arg in server.args):
        return ValidationError(server_name=name, message="Arguments must all be strings")

    if not isinstance(server.env, dict):
        return ValidationError(server_name=name, message="Environment must be a mapping")

    for key, value in server.env.items():
        if not isinstance(key, str) or not isinstance(value, str):
            return ValidationError(
                server_name=name,
                message=f"Environment entry '{key}' must map a string to a string",
            )

    if name in set(existing):
        return ValidationError(server_name=name, message=f"A server named '{name}' already exists")

    return None

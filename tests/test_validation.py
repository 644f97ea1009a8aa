# ABOUTME: Tests for server validation.
# ABOUTME: Validators return ValidationError records, they never raise.
from mcpctl.errors import ValidationError
from mcpctl.models import MCPServer
from mcpctl.utils.validation import validate_server


class TestValidateServer:
    """Tests for validate_server function."""

    def test_valid_server(self):
        server = MCPServer(name="fs", command="npx", args=["-y", "fs"], env={"A": "1"})
        assert validate_server(server) is None

    def test_empty_name(self):
        error = validate_server(MCPServer(name="  ", command="npx"))
        assert error is not None
        assert error.message == "Server name must not be empty"

    def test_missing_command(self):
        """Test that a blank command is rejected."""
        error = validate_server(MCPServer(name="fs", command=""))
        assert error == ValidationError(server_name="fs", message="Missing launch command")

    def test_non_string_args(self):
        error = validate_server(MCPServer(name="fs", command="npx", args=["ok", 3]))
        assert error is not None
        assert "Arguments" in error.message

    def test_args_must_be_list(self):
        error = validate_server(MCPServer(name="fs", command="npx", args="-y fs"))
        assert error is not None
        assert "Arguments" in error.message

    def test_non_string_env_value(self):
        error = validate_server(MCPServer(name="fs", command="npx", env={"PORT": 8080}))
        assert error is not None
        assert "PORT" in error.message

    def test_name_collision(self):
        error = validate_server(MCPServer(name="fs", command="npx"), existing=["github", "fs"])
        assert error is not None
        assert error.message == "A server named 'fs' already exists"
        assert error.severity == "error"

    def test_no_collision_with_other_names(self):
        assert validate_server(MCPServer(name="fs", command="npx"), existing=["github"]) is None

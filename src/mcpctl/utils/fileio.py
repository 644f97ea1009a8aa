# ABOUTME: File helpers shared by adapters, backups and settings.
# ABOUTME: Content hashing, tolerant reads and crash-safe atomic writes.
import hashlib
import logging
import os
import tempfile
from pathlib import Path

from mcpctl.errors import ConfigPermissionError, WriteError

logger = logging.getLogger(__name__)


def content_hash(content: bytes | None) -> str | None:
    """SHA-256 hex digest of raw file content, None for an absent file."""
    if content is None:
        return None
    return hashlib.sha256(content).hexdigest()


def read_bytes(path: Path) -> bytes | None:
    """Read a file, returning None if it does not exist.

    ABOUTME: Directories and missing files both count as absent
    ABOUTME: Raises ConfigPermissionError when access is denied
    """
    try:
        return path.read_bytes()
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    except PermissionError as e:
        raise ConfigPermissionError(f"Permission denied reading {path}: {e}") from e


def atomic_write(path: Path, content: bytes) -> None:
    """Write content to path so readers never observe a partial file.

    ABOUTME: Writes a temp file in the same directory, fsyncs, then os.replace()
    ABOUTME: Keeps the original file mode when replacing an existing file

    Raises:
        ConfigPermissionError: If the directory or file is not writable
        WriteError: For any other OS failure
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = path.stat().st_mode & 0o777 if path.exists() else None

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            if mode is not None:
                os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
    except PermissionError as e:
        raise ConfigPermissionError(f"Permission denied writing {path}: {e}") from e
    except OSError as e:
        raise WriteError(f"Failed to write {path}: {e}") from e

    logger.debug(f"Wrote {len(content)} bytes to {path}")

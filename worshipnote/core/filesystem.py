"""
File capability provider for worshipnote.

The reconciliation and repository layers never touch the filesystem
directly. They receive a FileCapabilityProvider, which reports expected
conditions (missing file, timeout, permission problems) as Err values
instead of raising.

OneDrive folders are the main reason for the read timeout: an online-only
placeholder can block a read for a long time while the client downloads
it, so each read runs in its own daemon thread and the caller gives up
after `read_timeout` seconds. A read that never returns only keeps its
own thread; later reads are not queued behind it.

Usage:
    from worshipnote.core.filesystem import LocalFileSystem

    files = LocalFileSystem(read_timeout=3.0)
    result = files.read_file(path)
    if result.is_ok:
        data = result.value
"""

import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from worshipnote.core.logger import get_logger
from worshipnote.core.result import Err, ErrorKind, Ok, Result


logger = get_logger(__name__)


class FileCapabilityProvider(ABC):
    """
    Abstract file operations addressed by absolute path.

    Implementations must not raise for expected conditions; they return
    Err with one of ErrorKind.NOT_FOUND, ErrorKind.TIMEOUT or ErrorKind.IO_ERROR.
    """

    @abstractmethod
    def read_file(self, path: Path) -> Result[bytes]:
        """Read the whole file. Err kinds: NOT_FOUND, TIMEOUT, IO_ERROR."""

    @abstractmethod
    def write_file(self, path: Path, data: bytes) -> Result[None]:
        """Write the whole file, creating intermediate directories."""

    @abstractmethod
    def rename_file(self, old_path: Path, new_path: Path) -> Result[None]:
        """Rename a file. Never overwrites an existing target."""

    @abstractmethod
    def delete_file(self, path: Path) -> Result[None]:
        """Delete a file. Err kinds: NOT_FOUND, IO_ERROR."""

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Return True if the path exists."""

    @abstractmethod
    def list_directory(self, path: Path) -> list[str]:
        """Return entry names in the directory (empty if it doesn't exist)."""


def _os_error(action: str, path: Path, error: OSError) -> Err:
    """Convert an OSError into an Err with the right kind."""
    if isinstance(error, FileNotFoundError):
        kind = ErrorKind.NOT_FOUND
        message = f"File not found: {path}"
    else:
        kind = ErrorKind.IO_ERROR
        message = f"Failed to {action} {path}: {error}"
    return Err(kind, message, {"path": str(path), "original_error": str(error)})


def _same_file(old_path: Path, new_path: Path) -> bool:
    """True when both names point at one file (a case-only rename on NTFS or APFS)."""
    try:
        return old_path.samefile(new_path)
    except OSError:
        return False


class LocalFileSystem(FileCapabilityProvider):
    """
    FileCapabilityProvider backed by the local filesystem (pathlib).

    Attributes:
        read_timeout: Seconds to wait for a read before reporting TIMEOUT.
                      None disables the timeout.
    """

    def __init__(self, read_timeout: float | None = 3.0) -> None:
        self.read_timeout = read_timeout

    def read_file(self, path: Path) -> Result[bytes]:
        path = Path(path)
        if self.read_timeout is None:
            try:
                return Ok(path.read_bytes())
            except OSError as e:
                return _os_error("read", path, e)

        outcome: dict[str, Any] = {}

        def read() -> None:
            try:
                outcome["data"] = path.read_bytes()
            except Exception as e:
                outcome["error"] = e

        reader = threading.Thread(target=read, name=f"worshipnote-read-{path.name}", daemon=True)
        reader.start()
        reader.join(self.read_timeout)

        if reader.is_alive():
            logger.debug(f"Read timed out after {self.read_timeout}s: {path}")
            return Err(
                ErrorKind.TIMEOUT,
                f"Timed out reading {path}",
                {"path": str(path), "timeout": self.read_timeout}
            )

        error = outcome.get("error")
        if isinstance(error, OSError):
            return _os_error("read", path, error)
        if error is not None:
            raise error
        return Ok(outcome["data"])

    def write_file(self, path: Path, data: bytes) -> Result[None]:
        path = Path(path)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
            return Ok(None)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.debug(f"Could not remove {tmp_path}: {cleanup_error}")
            return _os_error("write", path, e)

    def rename_file(self, old_path: Path, new_path: Path) -> Result[None]:
        old_path = Path(old_path)
        new_path = Path(new_path)
        if new_path.exists() and not _same_file(old_path, new_path):
            return Err(
                ErrorKind.IO_ERROR,
                f"Target already exists: {new_path}",
                {"path": str(old_path), "target": str(new_path)}
            )
        try:
            old_path.rename(new_path)
            return Ok(None)
        except OSError as e:
            return _os_error("rename", old_path, e)

    def delete_file(self, path: Path) -> Result[None]:
        path = Path(path)
        try:
            path.unlink()
            return Ok(None)
        except OSError as e:
            return _os_error("delete", path, e)

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def list_directory(self, path: Path) -> list[str]:
        path = Path(path)
        try:
            return sorted(entry.name for entry in path.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return []
        except OSError as e:
            logger.warning(f"Cannot list directory {path}: {e}")
            return []

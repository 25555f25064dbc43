"""Remote transport abstract base class."""

import errno
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Iterable

from ..config import DeployConfig
from ..exceptions import DeployTransferError

logger = logging.getLogger(__name__)


class RemoteEntryType(str, Enum):
    """Type of a remote directory entry."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class RemoteEntry:
    """A single entry returned when listing a remote directory."""

    name: str
    type: RemoteEntryType

    @property
    def is_dir(self) -> bool:
        return self.type == RemoteEntryType.DIRECTORY


def check_entry_name(name: str, remote_dir: str = "") -> str:
    """Return ``name`` if it is a single path segment.

    Raises:
        DeployTransferError: If the server sent a name with ``/``, a NUL
            byte, or one that is empty, ``.`` or ``..``
    """
    if not name or name in (".", "..") or "/" in name or "\0" in name:
        raise DeployTransferError(
            f"list {remote_dir}: refusing unsafe entry name {name!r}",
            code="EBADNAME",
            path=remote_dir or None,
        )
    return name


def filter_entries(entries: Iterable[RemoteEntry], remote_dir: str = "") -> list[RemoteEntry]:
    """Drop the ``.`` and ``..`` pseudo entries, keeping listing order.

    Raises:
        DeployTransferError: If any other entry name is not a plain name
    """
    result = []
    for entry in entries:
        if entry.name in (".", ".."):
            continue
        check_entry_name(entry.name, remote_dir)
        result.append(entry)
    return result


def error_code(exc: BaseException, default: str) -> str:
    """Derive a short machine-readable code from a library exception.

    FTP replies carry a three digit code at the start of the message,
    socket errors carry an errno.
    """
    errno_value = getattr(exc, "errno", None)
    if isinstance(errno_value, int) and errno_value in errno.errorcode:
        return errno.errorcode[errno_value]
    text = str(exc)
    if len(text) >= 3 and text[:3].isdigit():
        return text[:3]
    return default


class RemoteTransport(ABC):
    """Single-session connection to a remote filesystem.

    A transport allows only one request in flight at a time; callers issue
    operations strictly sequentially.
    """

    def __init__(self, config: DeployConfig):
        """Initialize transport.

        Args:
            config: Deployment configuration (host, credentials, options)
        """
        self.config = config
        self._disconnect_callbacks: list[Callable[[], None]] = []
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def on_disconnect(self, callback: Callable[[], None]) -> None:
        """Register a callback invoked whenever the session ends."""
        self._disconnect_callbacks.append(callback)

    def _notify_disconnected(self) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.debug(f"Disconnected from {self.config.host}")
        for callback in self._disconnect_callbacks:
            callback()

    def connect(self) -> str:
        """Open the session.

        Returns:
            Greeting or banner message sent by the server

        Raises:
            DeployConnectError: If connecting or authenticating fails
        """
        message = self._do_connect()
        self._connected = True
        return message

    def _connection_lost(self) -> None:
        """Release the client after the server went away, then notify."""
        if not self._connected:
            return
        try:
            self._abort()
        finally:
            self._notify_disconnected()

    def _abort(self) -> None:
        """Drop the client without a polite goodbye. Defaults to ``_do_close``."""
        self._do_close()

    def end(self) -> None:
        """Close the session. Safe to call more than once."""
        if not self._connected:
            return
        try:
            self._do_close()
        finally:
            self._notify_disconnected()

    @abstractmethod
    def _do_connect(self) -> str:
        """Actual connection logic to be implemented by subclasses"""

    @abstractmethod
    def _do_close(self) -> None:
        """Actual cleanup logic to be implemented by subclasses"""

    @abstractmethod
    def list(self, path: str) -> list[RemoteEntry]:
        """List a remote directory.

        Args:
            path: Remote directory path

        Returns:
            Entries in server order, without ``.`` and ``..``

        Raises:
            DeployTransferError: If the directory cannot be listed
        """

    @abstractmethod
    def mkdir(self, path: str, recursive: bool = True) -> None:
        """Create a remote directory.

        With ``recursive`` missing parents are created and an existing
        directory is not an error.
        """

    @abstractmethod
    def rmdir(self, path: str) -> None:
        """Remove an empty remote directory."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a remote file."""

    @abstractmethod
    def put(self, data: bytes, path: str) -> None:
        """Write ``data`` to the remote file ``path``, replacing it."""

    @abstractmethod
    def get(self, path: str, fp: BinaryIO) -> None:
        """Stream the remote file ``path`` into the writable binary file ``fp``."""

    def __enter__(self) -> "RemoteTransport":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(host={self.config.host!r}, "
            f"port={self.config.effective_port})"
        )

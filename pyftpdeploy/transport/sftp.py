"""SFTP transport built on paramiko."""

import io
import logging
import posixpath
import stat
from typing import BinaryIO, Callable, Optional, TypeVar

import paramiko

from ..exceptions import DeployConnectError, DeployTransferError
from .base import RemoteEntry, RemoteEntryType, RemoteTransport, error_code, filter_entries

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SFTPTransport(RemoteTransport):
    """Remote transport speaking SFTP over an SSH session."""

    def __init__(self, config, client_class: Callable[[], paramiko.SSHClient] = paramiko.SSHClient):
        """Initialize SFTP transport.

        Args:
            config: Deployment configuration
            client_class: Factory for the SSH client
        """
        super().__init__(config)
        self._client_class = client_class
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise DeployTransferError("Not connected", code="ENOTCONN")
        return self._sftp

    def _do_connect(self) -> str:
        config = self.config
        ssh = self._client_class()
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            ssh.connect(
                config.host,
                port=config.effective_port,
                username=config.user,
                password=config.password,
                key_filename=config.private_key,
                passphrase=config.passphrase,
                timeout=config.timeout,
            )
            sftp = ssh.open_sftp()
        except paramiko.AuthenticationException as e:
            ssh.close()
            raise DeployConnectError(str(e) or "Authentication failed", code="EAUTH") from e
        except paramiko.SSHException as e:
            ssh.close()
            raise DeployConnectError(str(e), code="ESSH") from e
        except OSError as e:
            ssh.close()
            raise DeployConnectError(str(e), code=error_code(e, "ECONNECT")) from e

        self._ssh = ssh
        self._sftp = sftp
        transport = ssh.get_transport()
        banner = transport.remote_version if transport is not None else ""
        logger.debug(f"SFTP session open on {config.host}:{config.effective_port}")
        return banner

    def _do_close(self) -> None:
        sftp, self._sftp = self._sftp, None
        ssh, self._ssh = self._ssh, None
        if sftp is not None:
            sftp.close()
        if ssh is not None:
            ssh.close()

    def _abort(self) -> None:
        sftp, self._sftp = self._sftp, None
        ssh, self._ssh = self._ssh, None
        for client in (sftp, ssh):
            if client is None:
                continue
            try:
                client.close()
            except (OSError, EOFError, paramiko.SSHException) as e:
                logger.debug(f"Ignoring error while dropping {type(client).__name__}: {e}")

    def _call(self, action: str, path: str, func: Callable[[], T]) -> T:
        """Run one SFTP request, translating errors to DeployTransferError."""
        try:
            return func()
        except (EOFError, paramiko.SSHException) as e:
            self._connection_lost()
            raise DeployTransferError(
                f"{action} {path}: connection lost ({e})", code="ECONNRESET", path=path
            ) from e
        except (OSError, paramiko.SFTPError) as e:
            raise DeployTransferError(
                f"{action} {path}: {e}", code=error_code(e, "ETRANSFER"), path=path
            ) from e

    def list(self, path: str) -> list[RemoteEntry]:
        def do_list() -> list[RemoteEntry]:
            return [
                RemoteEntry(
                    name=attr.filename,
                    type=(
                        RemoteEntryType.DIRECTORY
                        if stat.S_ISDIR(attr.st_mode or 0)
                        else RemoteEntryType.FILE
                    ),
                )
                for attr in self.sftp.listdir_attr(path)
            ]

        return filter_entries(self._call("list", path, do_list), path)

    def _exists_as_dir(self, path: str) -> bool:
        try:
            attr = self.sftp.stat(path)
        except FileNotFoundError:
            return False
        return stat.S_ISDIR(attr.st_mode or 0)

    def mkdir(self, path: str, recursive: bool = True) -> None:
        if not recursive:
            self._call("mkdir", path, lambda: self.sftp.mkdir(path))
            return

        def make_parents() -> None:
            current = "/" if path.startswith("/") else ""
            for part in path.split("/"):
                if not part:
                    continue
                current = posixpath.join(current, part)
                if not self._exists_as_dir(current):
                    self.sftp.mkdir(current)

        self._call("mkdir", path, make_parents)

    def rmdir(self, path: str) -> None:
        self._call("rmdir", path, lambda: self.sftp.rmdir(path))

    def delete(self, path: str) -> None:
        self._call("delete", path, lambda: self.sftp.remove(path))

    def put(self, data: bytes, path: str) -> None:
        self._call(
            "put",
            path,
            lambda: self.sftp.putfo(io.BytesIO(data), path, file_size=len(data)),
        )

    def get(self, path: str, fp: BinaryIO) -> None:
        self._call("get", path, lambda: self.sftp.getfo(path, fp))

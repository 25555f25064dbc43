"""FTP transport built on :mod:`ftplib`."""

import ftplib
import io
import logging
import posixpath
from typing import BinaryIO, Callable, Optional, TypeVar

from ..exceptions import DeployConnectError, DeployTransferError
from ..utils import DEFAULT_BLOCK_SIZE
from .base import RemoteEntry, RemoteEntryType, RemoteTransport, error_code, filter_entries

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Replies meaning "command not implemented / not understood"
_UNSUPPORTED_REPLIES = ("500", "501", "502", "504")


class FTPTransport(RemoteTransport):
    """Remote transport speaking plain FTP or FTP over explicit TLS."""

    def __init__(self, config, ftp_class: Optional[Callable[..., ftplib.FTP]] = None):
        """Initialize FTP transport.

        Args:
            config: Deployment configuration
            ftp_class: Factory for the ftplib client (defaults to ``FTP`` or
                ``FTP_TLS`` depending on ``config.secure``)
        """
        super().__init__(config)
        if ftp_class is None:
            ftp_class = ftplib.FTP_TLS if config.secure else ftplib.FTP
        self._ftp_class = ftp_class
        self._ftp: Optional[ftplib.FTP] = None

    @property
    def ftp(self) -> ftplib.FTP:
        if self._ftp is None:
            raise DeployTransferError("Not connected", code="ENOTCONN")
        return self._ftp

    def _do_connect(self) -> str:
        config = self.config
        ftp = self._ftp_class(timeout=config.timeout)
        try:
            welcome = ftp.connect(config.host, config.effective_port)
            ftp.login(config.user, config.password or "")
            if isinstance(ftp, ftplib.FTP_TLS):
                ftp.prot_p()
            ftp.set_pasv(config.force_pasv)
        except ftplib.all_errors as e:
            ftp.close()
            raise DeployConnectError(str(e), code=error_code(e, "ECONNECT")) from e
        self._ftp = ftp
        logger.debug(f"FTP session open on {config.host}:{config.effective_port}")
        return welcome

    def _do_close(self) -> None:
        ftp, self._ftp = self._ftp, None
        if ftp is None:
            return
        try:
            ftp.quit()
        except ftplib.all_errors as e:
            logger.debug(f"QUIT failed ({e}), closing socket")
            ftp.close()

    def _abort(self) -> None:
        # No QUIT: the control connection is already gone
        ftp, self._ftp = self._ftp, None
        if ftp is not None:
            ftp.close()

    def _call(self, action: str, path: str, func: Callable[[], T]) -> T:
        """Run one FTP command, translating errors to DeployTransferError."""
        try:
            return func()
        except (EOFError, ConnectionError) as e:
            self._connection_lost()
            raise DeployTransferError(
                f"{action} {path}: connection lost ({e})",
                code=error_code(e, "ECONNRESET"),
                path=path,
            ) from e
        except ftplib.all_errors as e:
            raise DeployTransferError(
                f"{action} {path}: {e}", code=error_code(e, "ETRANSFER"), path=path
            ) from e

    def _is_dir(self, path: str) -> bool:
        ftp = self.ftp
        current = ftp.pwd()
        try:
            ftp.cwd(path)
        except ftplib.error_perm:
            return False
        ftp.cwd(current)
        return True

    def _list_mlsd(self, path: str) -> list[RemoteEntry]:
        entries = []
        for name, facts in self.ftp.mlsd(path, facts=["type"]):
            kind = facts.get("type", "").lower()
            if kind in ("cdir", "pdir"):
                continue
            entry_type = RemoteEntryType.DIRECTORY if kind == "dir" else RemoteEntryType.FILE
            entries.append(RemoteEntry(name=name, type=entry_type))
        return entries

    def _list_nlst(self, path: str) -> list[RemoteEntry]:
        # NLST gives no types; probe each name with CWD
        entries = []
        for raw in self.ftp.nlst(path):
            name = posixpath.basename(raw.rstrip("/"))
            entry_type = (
                RemoteEntryType.DIRECTORY
                if self._is_dir(posixpath.join(path, name))
                else RemoteEntryType.FILE
            )
            entries.append(RemoteEntry(name=name, type=entry_type))
        return entries

    def list(self, path: str) -> list[RemoteEntry]:
        def do_list() -> list[RemoteEntry]:
            try:
                return self._list_mlsd(path)
            except ftplib.error_perm as e:
                if not str(e).startswith(_UNSUPPORTED_REPLIES):
                    raise
                logger.debug("MLSD not supported, falling back to NLST")
                return self._list_nlst(path)

        return filter_entries(self._call("list", path, do_list), path)

    def mkdir(self, path: str, recursive: bool = True) -> None:
        if not recursive:
            self._call("mkdir", path, lambda: self.ftp.mkd(path))
            return

        def make_parents() -> None:
            current = "/" if path.startswith("/") else ""
            for part in path.split("/"):
                if not part:
                    continue
                current = posixpath.join(current, part)
                try:
                    self.ftp.mkd(current)
                except ftplib.error_perm:
                    if not self._is_dir(current):
                        raise

        self._call("mkdir", path, make_parents)

    def rmdir(self, path: str) -> None:
        self._call("rmdir", path, lambda: self.ftp.rmd(path))

    def delete(self, path: str) -> None:
        self._call("delete", path, lambda: self.ftp.delete(path))

    def put(self, data: bytes, path: str) -> None:
        self._call(
            "put", path, lambda: self.ftp.storbinary(f"STOR {path}", io.BytesIO(data))
        )

    def get(self, path: str, fp: BinaryIO) -> None:
        self._call(
            "get",
            path,
            lambda: self.ftp.retrbinary(f"RETR {path}", fp.write, DEFAULT_BLOCK_SIZE),
        )

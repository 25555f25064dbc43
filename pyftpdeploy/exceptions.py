"""Exception hierarchy for pyftpdeploy."""

from typing import Optional


class DeployError(Exception):
    """Base exception for all deployment errors.

    Every error carries a machine-distinguishable ``code`` next to the
    human-readable ``message``.
    """

    default_code = "EDEPLOY"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        """Return the error as a plain dictionary (used for JSON output)."""
        return {"code": self.code, "message": self.message}


class DeployConfigError(DeployError):
    """Configuration is missing or cannot be read."""

    default_code = "ECONFIG"


class DeployConnectError(DeployError):
    """Connecting or authenticating to the remote server failed."""

    default_code = "ECONNECT"


class DeployScanError(DeployError):
    """The local root cannot be scanned."""

    default_code = "ENOENT"


class DeployTransferError(DeployError):
    """A single remote operation (upload, download, mkdir, rmdir, delete) failed."""

    default_code = "ETRANSFER"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        path: Optional[str] = None,
    ):
        super().__init__(message, code)
        self.path = path

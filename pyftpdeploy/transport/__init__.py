"""Remote filesystem transports (FTP and SFTP)."""

from ..config import DeployConfig
from .base import RemoteEntry, RemoteEntryType, RemoteTransport, filter_entries
from .ftp import FTPTransport


def create_transport(config: DeployConfig) -> RemoteTransport:
    """Create the transport selected by ``config.sftp``.

    Args:
        config: Deployment configuration

    Returns:
        SFTPTransport when ``config.sftp`` is set, FTPTransport otherwise
    """
    if config.sftp:
        # Lazy import: paramiko is only needed for SFTP
        from .sftp import SFTPTransport

        return SFTPTransport(config)
    return FTPTransport(config)


__all__ = [
    "RemoteEntry",
    "RemoteEntryType",
    "RemoteTransport",
    "FTPTransport",
    "create_transport",
    "filter_entries",
]

"""PyFtpDeploy - deploy a local directory tree to an FTP or SFTP server."""

from .config import DeployConfig, load_config_from_json
from .deploy import DeployPipeline, DeployProgressTracker, deploy, should_include
from .exceptions import (
    DeployConfigError,
    DeployConnectError,
    DeployError,
    DeployScanError,
    DeployTransferError,
)

__version__ = "0.3.0"

__all__ = [
    "DeployConfig",
    "DeployPipeline",
    "DeployProgressTracker",
    "deploy",
    "load_config_from_json",
    "should_include",
    "DeployError",
    "DeployConfigError",
    "DeployConnectError",
    "DeployScanError",
    "DeployTransferError",
]

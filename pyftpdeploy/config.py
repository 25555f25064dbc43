"""Deployment configuration.

A configuration is loaded once per run and never mutated afterwards. The
on-disk format is JSON with camelCase keys::

    {
        "host": "ftp.example.com",
        "user": "deploy",
        "password": "secret",
        "localRoot": "./dist",
        "remoteRoot": "/public_html",
        "include": ["*", "**/*"],
        "exclude": ["**/*.map", ".git/**"],
        "deleteRemote": false,
        "backup": true,
        "backupRoot": "./backups",
        "sftp": false
    }
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import DeployConfigError
from .utils import DEFAULT_FTP_PORT, DEFAULT_SFTP_PORT, DEFAULT_TIMEOUT, ENV_PASSWORD

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("host", "localRoot", "remoteRoot", "include")

# JSON key -> attribute name
_KEY_MAP = {
    "host": "host",
    "port": "port",
    "user": "user",
    "password": "password",
    "localRoot": "local_root",
    "remoteRoot": "remote_root",
    "include": "include",
    "exclude": "exclude",
    "deleteRemote": "delete_remote",
    "backup": "backup",
    "backupRoot": "backup_root",
    "sftp": "sftp",
    "forcePasv": "force_pasv",
    "secure": "secure",
    "privateKey": "private_key",
    "passphrase": "passphrase",
    "timeout": "timeout",
}


@dataclass(frozen=True)
class DeployConfig:
    """Immutable settings for one deployment run."""

    host: str
    """Remote server hostname"""

    local_root: Path
    """Local directory whose contents are uploaded"""

    remote_root: str
    """Remote directory receiving the upload (POSIX path)"""

    include: list[str]
    """Glob patterns selecting files to upload (must not be empty)"""

    exclude: list[str] = field(default_factory=list)
    """Glob patterns removing files from the selection"""

    user: str = "anonymous"
    password: Optional[str] = field(default=None, repr=False)

    port: Optional[int] = None
    """Server port; defaults to 21 for FTP and 22 for SFTP"""

    sftp: bool = False
    """Use SFTP instead of FTP"""

    delete_remote: bool = False
    """Delete everything under remote_root before uploading"""

    backup: bool = False
    """Download remote_root to backup_root before anything is deleted"""

    backup_root: Path = Path("backups")
    """Local directory receiving timestamped backups"""

    force_pasv: bool = True
    """Use FTP passive mode"""

    secure: bool = False
    """Use FTP over explicit TLS"""

    private_key: Optional[str] = None
    """Path to an SSH private key (SFTP only)"""

    passphrase: Optional[str] = field(default=None, repr=False)

    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "local_root", Path(self.local_root))
        object.__setattr__(self, "backup_root", Path(self.backup_root))
        object.__setattr__(self, "include", list(self.include))
        object.__setattr__(self, "exclude", list(self.exclude or []))
        remote_root = str(self.remote_root).strip() or "/"
        if remote_root != "/":
            remote_root = remote_root.rstrip("/")
        object.__setattr__(self, "remote_root", remote_root)
        if not self.include:
            raise DeployConfigError("'include' must contain at least one pattern")

    @property
    def effective_port(self) -> int:
        """Port to connect to, falling back to the protocol default."""
        if self.port:
            return self.port
        return DEFAULT_SFTP_PORT if self.sftp else DEFAULT_FTP_PORT

    @property
    def protocol(self) -> str:
        return "sftp" if self.sftp else "ftp"

    def with_overrides(self, **changes: Any) -> "DeployConfig":
        """Return a copy with the given non-None attributes replaced."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            return self
        return replace(self, **changes)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], base_dir: Optional[Path] = None
    ) -> "DeployConfig":
        """Create a configuration from a dictionary with camelCase keys.

        Args:
            data: Configuration dictionary
            base_dir: Directory that relative ``localRoot`` and ``backupRoot``
                are resolved against (defaults to the working directory)

        Returns:
            DeployConfig instance

        Raises:
            DeployConfigError: If required fields are missing
        """
        missing = [key for key in REQUIRED_FIELDS if key not in data]
        if missing:
            raise DeployConfigError(f"Missing required fields: {', '.join(missing)}")

        unknown = sorted(set(data) - set(_KEY_MAP))
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        kwargs = {_KEY_MAP[key]: value for key, value in data.items() if key in _KEY_MAP}

        if isinstance(kwargs["include"], str):
            kwargs["include"] = [kwargs["include"]]
        if isinstance(kwargs.get("exclude"), str):
            kwargs["exclude"] = [kwargs["exclude"]]

        if base_dir is not None:
            for key in ("local_root", "backup_root"):
                if key in kwargs and not Path(kwargs[key]).expanduser().is_absolute():
                    kwargs[key] = (base_dir / kwargs[key]).resolve()

        if kwargs.get("password") is None and os.environ.get(ENV_PASSWORD):
            kwargs["password"] = os.environ[ENV_PASSWORD]

        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert the configuration to a dictionary with camelCase keys.

        The password and passphrase are never written out.
        """
        attr_to_key = {attr: key for key, attr in _KEY_MAP.items()}
        result: dict[str, Any] = {}
        for f in fields(self):
            if f.name in ("password", "passphrase"):
                continue
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            result[attr_to_key[f.name]] = value
        return result


def load_config_from_json(path: Union[str, Path]) -> DeployConfig:
    """Load a deployment configuration from a JSON file.

    Relative ``localRoot`` and ``backupRoot`` values are resolved against
    the directory containing the file.

    Args:
        path: Path to the JSON file

    Returns:
        DeployConfig instance

    Raises:
        DeployConfigError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise DeployConfigError(f"Config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise DeployConfigError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise DeployConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise DeployConfigError(f"Config file {path} must contain a JSON object")

    logger.debug(f"Loaded config from {path}")
    return DeployConfig.from_dict(data, base_dir=path.parent.resolve())


def config_template() -> dict[str, Any]:
    """Return the template written by ``pyftpdeploy init``."""
    return {
        "host": "ftp.example.com",
        "port": DEFAULT_FTP_PORT,
        "user": "deploy",
        "localRoot": "./dist",
        "remoteRoot": "/public_html",
        "include": ["*", "**/*"],
        "exclude": [".git/**", "**/*.map"],
        "deleteRemote": False,
        "backup": False,
        "backupRoot": "./backups",
        "sftp": False,
        "forcePasv": True,
    }

"""Shared fixtures: an in-memory remote filesystem and config factory."""

import posixpath
from pathlib import Path
from typing import BinaryIO, Optional

import pytest

from pyftpdeploy.config import DeployConfig
from pyftpdeploy.exceptions import DeployConnectError, DeployTransferError
from pyftpdeploy.transport.base import RemoteEntry, RemoteEntryType, RemoteTransport


class FakeTransport(RemoteTransport):
    """Remote filesystem kept in memory.

    ``calls`` records every operation as ``(action, path)``. Register a
    failure for an operation with ``fail_on(action, path)``.
    """

    def __init__(
        self,
        config: DeployConfig,
        files: Optional[dict[str, bytes]] = None,
        dirs: Optional[list[str]] = None,
        connect_error: Optional[Exception] = None,
    ):
        super().__init__(config)
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = {"/"}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.connect_error = connect_error
        self.close_count = 0
        for d in dirs or []:
            self._add_dir(d)
        for path, data in (files or {}).items():
            self._add_dir(posixpath.dirname(path))
            self.files[path] = data

    def _add_dir(self, path: str) -> None:
        while path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)

    def fail_on(self, action: str, path: str, error: Optional[Exception] = None) -> None:
        self.failures[(action, path)] = error or DeployTransferError(
            f"{action} {path}: 550 Permission denied", code="550", path=path
        )

    def _check(self, action: str, path: str) -> None:
        self.calls.append((action, path))
        if (action, path) in self.failures:
            raise self.failures[(action, path)]

    def actions(self, action: str) -> list[str]:
        return [path for name, path in self.calls if name == action]

    def _do_connect(self) -> str:
        self.calls.append(("connect", self.config.host))
        if self.connect_error is not None:
            raise self.connect_error
        return "220 Fake server ready"

    def _do_close(self) -> None:
        self.close_count += 1
        self.calls.append(("end", self.config.host))

    def list(self, path: str) -> list[RemoteEntry]:
        self._check("list", path)
        if path not in self.dirs:
            raise DeployTransferError(f"list {path}: 550 No such directory", code="550")
        entries = [
            RemoteEntry(posixpath.basename(d), RemoteEntryType.DIRECTORY)
            for d in self.dirs
            if d != path and posixpath.dirname(d) == path
        ]
        entries += [
            RemoteEntry(posixpath.basename(f), RemoteEntryType.FILE)
            for f in self.files
            if posixpath.dirname(f) == path
        ]
        return sorted(entries, key=lambda e: e.name)

    def mkdir(self, path: str, recursive: bool = True) -> None:
        self._check("mkdir", path)
        if not recursive and posixpath.dirname(path) not in self.dirs:
            raise DeployTransferError(f"mkdir {path}: 550 No such directory", code="550")
        self._add_dir(path)

    def rmdir(self, path: str) -> None:
        self._check("rmdir", path)
        children = [p for p in list(self.dirs) + list(self.files) if posixpath.dirname(p) == path and p != path]
        if children:
            raise DeployTransferError(f"rmdir {path}: 550 Directory not empty", code="550")
        self.dirs.discard(path)

    def delete(self, path: str) -> None:
        self._check("delete", path)
        if path not in self.files:
            raise DeployTransferError(f"delete {path}: 550 No such file", code="550")
        del self.files[path]

    def put(self, data: bytes, path: str) -> None:
        self._check("put", path)
        if posixpath.dirname(path) not in self.dirs:
            raise DeployTransferError(f"put {path}: 553 No such directory", code="553")
        self.files[path] = data

    def get(self, path: str, fp: BinaryIO) -> None:
        self._check("get", path)
        if path not in self.files:
            raise DeployTransferError(f"get {path}: 550 No such file", code="550")
        fp.write(self.files[path])


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create files (and their parent directories) below root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def local_root(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def make_config(local_root, tmp_path):
    """Factory for configs pointing at the local_root fixture."""

    def factory(**overrides) -> DeployConfig:
        values = {
            "host": "ftp.example.com",
            "user": "deploy",
            "password": "secret",
            "local_root": local_root,
            "remote_root": "/www",
            "include": ["*", "**/*"],
            "backup_root": tmp_path / "backups",
        }
        values.update(overrides)
        return DeployConfig(**values)

    return factory


@pytest.fixture
def connect_refused():
    return DeployConnectError("[Errno 111] Connection refused", code="ECONNREFUSED")

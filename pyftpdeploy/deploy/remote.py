"""Recursive walks over the remote tree: deletion and backup.

Both walks are best-effort. Their entry points never raise a deployment
error; a failure is logged, reported to the progress tracker and returned
as a failed :class:`StageOutcome`, and the pipeline moves on. A fresh
server legitimately has nothing to back up or delete.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import DeployError, DeployTransferError
from ..transport.base import RemoteTransport, check_entry_name
from ..utils import format_size, join_remote, relative_remote_path
from .progress import DeployProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class StageOutcome:
    """Result of a best-effort stage."""

    stage: str
    ok: bool = True
    error: Optional[BaseException] = None
    summary: str = ""


def best_effort(
    stage: str,
    tracker: DeployProgressTracker,
    func: Callable[[], str],
) -> StageOutcome:
    """Run ``func`` and absorb remote and local I/O failures.

    Args:
        stage: Stage name used in messages
        tracker: Receives the failure notification
        func: Stage body returning a summary line

    Returns:
        StageOutcome, failed if ``func`` raised
    """
    try:
        summary = func()
    except (DeployError, OSError) as e:
        logger.warning(f"{stage} failed: {e}")
        tracker.log(f"{stage.capitalize()} failed, trying to continue: {e}")
        return StageOutcome(stage=stage, ok=False, error=e)
    return StageOutcome(stage=stage, ok=True, summary=summary)


class RemoteTreeDeleter:
    """Empties a remote directory tree, depth first."""

    def __init__(self, transport: RemoteTransport, tracker: DeployProgressTracker):
        self.transport = transport
        self.tracker = tracker
        self.files_deleted = 0
        self.dirs_deleted = 0

    def delete_tree(self, remote_dir: str) -> StageOutcome:
        """Delete everything below ``remote_dir`` (the directory itself stays).

        Never raises; see :func:`best_effort`.
        """
        self.files_deleted = 0
        self.dirs_deleted = 0

        def run() -> str:
            self._delete_dir(remote_dir)
            self.tracker.log(f"Deleted directory: {remote_dir}")
            return (
                f"Deleted {self.files_deleted} file(s) and "
                f"{self.dirs_deleted} director(y/ies) below {remote_dir}"
            )

        return best_effort("delete", self.tracker, run)

    def _delete_dir(self, remote_dir: str) -> None:
        entries = self.transport.list(remote_dir)
        for entry in entries:
            check_entry_name(entry.name, remote_dir)
        subdirs = [join_remote(remote_dir, e.name) for e in entries if e.is_dir]
        files = [join_remote(remote_dir, e.name) for e in entries if not e.is_dir]

        # Children must be gone before RMD succeeds on a compliant server
        for subdir in subdirs:
            self._delete_dir(subdir)
            self.transport.rmdir(subdir)
            self.dirs_deleted += 1
            logger.debug(f"Removed directory {subdir}")

        for path in files:
            self.transport.delete(path)
            self.files_deleted += 1
            logger.debug(f"Deleted {path}")


class RemoteTreeBackup:
    """Downloads a remote tree into a local folder, mirroring its layout."""

    def __init__(
        self,
        transport: RemoteTransport,
        tracker: DeployProgressTracker,
        remote_root: str,
    ):
        """Initialize backup walker.

        Args:
            transport: Connected transport
            tracker: Progress tracker
            remote_root: Root that local mirror paths are computed against
        """
        self.transport = transport
        self.tracker = tracker
        self.remote_root = remote_root
        self.files_downloaded = 0
        self.bytes_downloaded = 0

    def backup_tree(self, remote_dir: str, dest_root: Path) -> StageOutcome:
        """Mirror ``remote_dir`` into ``dest_root``.

        Never raises; see :func:`best_effort`.

        Args:
            remote_dir: Remote directory to back up
            dest_root: Local folder for this backup pass (already
                namespaced by the run's timestamp)
        """
        self.files_downloaded = 0
        self.bytes_downloaded = 0

        def run() -> str:
            dest_root.mkdir(parents=True, exist_ok=True)
            self._backup_dir(remote_dir, dest_root)
            return (
                f"Backed up {self.files_downloaded} file(s) "
                f"({format_size(self.bytes_downloaded)}) to {dest_root}"
            )

        return best_effort("backup", self.tracker, run)

    def _local_path(self, remote_path: str, dest_root: Path) -> Path:
        rel = relative_remote_path(remote_path, self.remote_root)
        local_path = dest_root / rel
        root = dest_root.resolve()
        resolved = local_path.resolve()
        if resolved != root and root not in resolved.parents:
            raise DeployTransferError(
                f"backup {remote_path}: target {local_path} is outside {dest_root}",
                code="EBADNAME",
                path=remote_path,
            )
        return local_path

    def _backup_dir(self, remote_dir: str, dest_root: Path) -> None:
        for entry in self.transport.list(remote_dir):
            remote_path = join_remote(remote_dir, check_entry_name(entry.name, remote_dir))
            local_path = self._local_path(remote_path, dest_root)

            if entry.is_dir:
                local_path.mkdir(parents=True, exist_ok=True)
                self._backup_dir(remote_path, dest_root)
                continue

            local_path.parent.mkdir(parents=True, exist_ok=True)
            with open(local_path, "wb") as fp:
                self.transport.get(remote_path, fp)
                self.bytes_downloaded += fp.tell()
            self.files_downloaded += 1
            logger.debug(f"Backed up {remote_path} -> {local_path}")

"""Upload executor: pushes the files of a manifest to the remote tree."""

import logging
from pathlib import Path

from ..exceptions import DeployTransferError
from ..transport.base import RemoteTransport, error_code
from ..utils import join_remote
from .progress import DeployProgressTracker
from .scanner import UploadManifest, manifest_file_count

logger = logging.getLogger(__name__)


class UploadExecutor:
    """Creates remote directories and uploads their files, one at a time.

    The first failure aborts the whole upload. Files already transferred
    stay on the server.
    """

    def __init__(
        self,
        transport: RemoteTransport,
        local_root: Path,
        remote_root: str,
        tracker: DeployProgressTracker,
    ):
        """Initialize upload executor.

        Args:
            transport: Connected transport
            local_root: Root of the local tree the manifest refers to
            remote_root: Remote directory receiving the files
            tracker: Progress tracker
        """
        self.transport = transport
        self.local_root = Path(local_root)
        self.remote_root = remote_root
        self.tracker = tracker

    def upload(self, manifest: UploadManifest) -> list[str]:
        """Upload every file in the manifest, in manifest order.

        Args:
            manifest: Upload manifest from the local scanner

        Returns:
            One ``"uploaded <local path>"`` line per file

        Raises:
            DeployTransferError: On the first failed directory or file
        """
        self.tracker.on_upload_batch_start(manifest_file_count(manifest))
        results: list[str] = []
        for rel_dir, names in manifest.items():
            results.extend(self._make_dir_and_upload(rel_dir, names))
        return results

    def _make_dir(self, remote_dir: str) -> None:
        if remote_dir == "/":
            return
        self.transport.mkdir(remote_dir, recursive=True)

    def _make_dir_and_upload(self, rel_dir: str, names: list[str]) -> list[str]:
        remote_dir = join_remote(self.remote_root, rel_dir)
        self._make_dir(remote_dir)

        results = []
        for name in names:
            rel_file = join_remote(rel_dir, name)
            local_file = self.local_root / rel_file.lstrip("/")
            try:
                data = local_file.read_bytes()
            except OSError as e:
                error = DeployTransferError(
                    f"read {local_file}: {e}", code=error_code(e, "EREAD"), path=rel_file
                )
                self.tracker.on_upload_error(rel_file, error)
                raise error from e

            self.tracker.on_upload_start(rel_file, len(data))
            try:
                self.transport.put(data, join_remote(remote_dir, name))
            except DeployTransferError as e:
                self.tracker.on_upload_error(rel_file, e)
                raise

            self.tracker.on_upload_complete(rel_file, len(data))
            results.append(f"uploaded {local_file}")
        return results

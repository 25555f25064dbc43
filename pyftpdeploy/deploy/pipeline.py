"""Deployment pipeline: connect, backup, delete, scan, upload, disconnect."""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..config import DeployConfig
from ..exceptions import DeployConnectError, DeployError
from ..transport import create_transport
from ..transport.base import RemoteTransport
from ..utils import backup_timestamp
from .progress import DeployProgressTracker
from .remote import RemoteTreeBackup, RemoteTreeDeleter, StageOutcome
from .scanner import LocalScanner, UploadManifest, manifest_file_count
from .uploader import UploadExecutor

logger = logging.getLogger(__name__)


class DeployStage(str, Enum):
    """States of a deployment run."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKING_UP = "backing_up"
    DELETING = "deleting"
    SCANNING = "scanning"
    UPLOADING = "uploading"
    FINISHED = "finished"
    FAILED = "failed"


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class DeployPipeline:
    """Runs one deployment against a single remote connection.

    Backup and delete are best-effort; scan and upload failures abort the
    run, close the connection and are re-raised to the caller.

    Examples:
        >>> pipeline = DeployPipeline(load_config_from_json("deploy.json"))
        >>> for line in pipeline.deploy():
        ...     print(line)
    """

    def __init__(
        self,
        config: DeployConfig,
        transport: Optional[RemoteTransport] = None,
        tracker: Optional[DeployProgressTracker] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize pipeline.

        Args:
            config: Deployment configuration
            transport: Remote transport (created from config if omitted)
            tracker: Progress tracker receiving notifications
            clock: Source of the backup timestamp
        """
        self.config = config
        self.transport = transport or create_transport(config)
        self.tracker = tracker or DeployProgressTracker()
        self.clock = clock
        self.stage = DeployStage.IDLE
        self.connection_status = ConnectionStatus.DISCONNECTED
        self.outcomes: list[StageOutcome] = []
        self._running = False
        self._started_at: Optional[datetime] = None
        self.transport.on_disconnect(self._handle_disconnect)

    def _handle_disconnect(self) -> None:
        self.connection_status = ConnectionStatus.DISCONNECTED

    def _enter(self, stage: DeployStage) -> None:
        logger.debug(f"Pipeline: {self.stage.value} -> {stage.value}")
        self.stage = stage
        if stage not in (DeployStage.CONNECTED, DeployStage.FINISHED, DeployStage.FAILED):
            self.tracker.on_stage_start(stage.value)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the transport connection.

        Raises:
            DeployConnectError: With the message prefixed by ``connect:``
        """
        self._enter(DeployStage.CONNECTING)
        try:
            server_message = self.transport.connect()
        except DeployConnectError as e:
            raise DeployConnectError(f"connect: {e.message}", code=e.code) from e

        self.connection_status = ConnectionStatus.CONNECTED
        self._enter(DeployStage.CONNECTED)
        self.tracker.on_connected(self.config.host, server_message)

    def backup_remote(self) -> Optional[StageOutcome]:
        """Back up the remote root if enabled. Never raises."""
        if not self.config.backup:
            return None
        self._enter(DeployStage.BACKING_UP)
        started_at = self._started_at or self.clock()
        dest_root = self.config.backup_root / backup_timestamp(started_at)
        walker = RemoteTreeBackup(self.transport, self.tracker, self.config.remote_root)
        outcome = walker.backup_tree(self.config.remote_root, dest_root)
        self._record(outcome)
        return outcome

    def delete_remote(self) -> Optional[StageOutcome]:
        """Empty the remote root if enabled. Never raises."""
        if not self.config.delete_remote:
            return None
        self._enter(DeployStage.DELETING)
        walker = RemoteTreeDeleter(self.transport, self.tracker)
        outcome = walker.delete_tree(self.config.remote_root)
        self._record(outcome)
        return outcome

    def scan_local(self) -> UploadManifest:
        """Build the upload manifest.

        Raises:
            DeployScanError: If the local root cannot be scanned
        """
        self._enter(DeployStage.SCANNING)
        scanner = LocalScanner(self.config.include, self.config.exclude)
        manifest = scanner.scan(self.config.local_root)
        self.tracker.log(f"Files found to upload: {json.dumps(manifest)}")
        self.tracker.on_stage_complete(
            DeployStage.SCANNING.value,
            f"Found {manifest_file_count(manifest)} file(s) to upload",
        )
        return manifest

    def upload(self, manifest: UploadManifest) -> list[str]:
        """Upload the manifest.

        Raises:
            DeployTransferError: On the first failed transfer
        """
        self._enter(DeployStage.UPLOADING)
        executor = UploadExecutor(
            self.transport,
            self.config.local_root,
            self.config.remote_root,
            self.tracker,
        )
        results = executor.upload(manifest)
        self.tracker.on_stage_complete(
            DeployStage.UPLOADING.value, f"Uploaded {len(results)} file(s)"
        )
        return results

    def _record(self, outcome: StageOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.ok:
            self.tracker.on_stage_complete(outcome.stage, outcome.summary)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def deploy(self) -> list[str]:
        """Run the whole deployment.

        Returns:
            One ``"uploaded <local path>"`` line per uploaded file

        Raises:
            DeployConnectError: If the connection could not be opened
            DeployError: If scanning or uploading failed
        """
        if self._running:
            raise DeployError("A deployment is already running", code="EBUSY")
        self._running = True
        self.outcomes = []
        self._started_at = self.clock()
        try:
            return self._run()
        finally:
            self._running = False

    def _run(self) -> list[str]:
        try:
            self.connect()
        except DeployConnectError as e:
            # Nothing was opened, nothing to close
            self.stage = DeployStage.FAILED
            self.tracker.on_error(e)
            raise

        try:
            self.backup_remote()
            self.delete_remote()
            manifest = self.scan_local()
            results = self.upload(manifest)
        except Exception as e:
            self._fail(e)
            raise

        self._close()
        self._enter(DeployStage.FINISHED)
        return results

    def _fail(self, error: Exception) -> None:
        self.stage = DeployStage.FAILED
        if self.connection_status != ConnectionStatus.DISCONNECTED:
            self._close()
        self.tracker.on_error(error)

    def _close(self) -> None:
        try:
            self.transport.end()
        except (DeployError, OSError) as e:
            logger.warning(f"Error while closing connection: {e}")
        finally:
            self.connection_status = ConnectionStatus.DISCONNECTED


def deploy(
    config: DeployConfig,
    tracker: Optional[DeployProgressTracker] = None,
) -> list[str]:
    """Deploy using a transport created from ``config``."""
    return DeployPipeline(config, tracker=tracker).deploy()

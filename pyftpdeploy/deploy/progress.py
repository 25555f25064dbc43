"""Progress notifications emitted while a deployment runs.

The pipeline and its stages report what they do through a
:class:`DeployProgressTracker`. The tracker forwards every notification as a
:class:`DeployProgressInfo` to an optional callback (the CLI uses this to
drive a Rich progress display) and also writes it to the module logger, so
a tracker without callback still leaves a trail in the logs.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DeployProgressEvent(str, Enum):
    """Kinds of deployment notifications."""

    LOG = "log"
    CONNECTED = "connected"
    STAGE_START = "stage_start"
    STAGE_COMPLETE = "stage_complete"
    UPLOAD_START = "uploading"
    UPLOAD_COMPLETE = "uploaded"
    UPLOAD_ERROR = "upload-error"
    ERROR = "error"


@dataclass
class DeployProgressInfo:
    """A single deployment notification."""

    event: DeployProgressEvent

    message: str = ""
    """Human-readable description"""

    stage: Optional[str] = None
    """Pipeline stage name for stage events"""

    filename: Optional[str] = None
    """Path of the file relative to the local root, for upload events"""

    error: Optional[BaseException] = None

    total_files: int = 0
    """Number of files in the upload manifest"""

    transferred_files: int = 0
    """Files uploaded so far"""

    bytes_total: int = 0
    """Size of the file being transferred"""

    @property
    def percent(self) -> float:
        if not self.total_files:
            return 0.0
        return 100.0 * self.transferred_files / self.total_files


class DeployProgressTracker:
    """Notification sink with one method per event kind."""

    def __init__(self, callback: Optional[Callable[[DeployProgressInfo], None]] = None):
        """Initialize the tracker.

        Args:
            callback: Function receiving every DeployProgressInfo
        """
        self.callback = callback
        self.total_files = 0
        self.transferred_files = 0

    def _emit(self, info: DeployProgressInfo) -> None:
        if self.callback is not None:
            self.callback(info)

    def log(self, message: str) -> None:
        logger.info(message)
        self._emit(DeployProgressInfo(event=DeployProgressEvent.LOG, message=message))

    def on_connected(self, host: str, server_message: str) -> None:
        logger.info(f"Connected to: {host}")
        logger.debug(f"Server message: {server_message}")
        self._emit(
            DeployProgressInfo(
                event=DeployProgressEvent.CONNECTED,
                message=f"Connected to: {host}",
            )
        )

    def on_stage_start(self, stage: str) -> None:
        logger.debug(f"Stage started: {stage}")
        self._emit(DeployProgressInfo(event=DeployProgressEvent.STAGE_START, stage=stage))

    def on_stage_complete(self, stage: str, summary: str = "") -> None:
        if summary:
            logger.info(summary)
        self._emit(
            DeployProgressInfo(
                event=DeployProgressEvent.STAGE_COMPLETE,
                stage=stage,
                message=summary,
            )
        )

    def on_upload_batch_start(self, total_files: int) -> None:
        """Reset counters before the upload stage begins."""
        self.total_files = total_files
        self.transferred_files = 0

    def on_upload_start(self, filename: str, size: int) -> None:
        logger.debug(f"Uploading {filename}")
        self._emit(
            DeployProgressInfo(
                event=DeployProgressEvent.UPLOAD_START,
                filename=filename,
                total_files=self.total_files,
                transferred_files=self.transferred_files,
                bytes_total=size,
            )
        )

    def on_upload_complete(self, filename: str, size: int) -> None:
        self.transferred_files += 1
        logger.debug(f"Uploaded {filename}")
        self._emit(
            DeployProgressInfo(
                event=DeployProgressEvent.UPLOAD_COMPLETE,
                filename=filename,
                total_files=self.total_files,
                transferred_files=self.transferred_files,
                bytes_total=size,
            )
        )

    def on_upload_error(self, filename: str, error: BaseException) -> None:
        logger.error(f"Upload of {filename} failed: {error}")
        self._emit(
            DeployProgressInfo(
                event=DeployProgressEvent.UPLOAD_ERROR,
                filename=filename,
                error=error,
                total_files=self.total_files,
                transferred_files=self.transferred_files,
            )
        )

    def on_error(self, error: BaseException) -> None:
        logger.error(f"Deployment failed: {error}")
        self._emit(
            DeployProgressInfo(
                event=DeployProgressEvent.ERROR,
                message=str(error),
                error=error,
            )
        )

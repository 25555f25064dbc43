"""CLI progress display for deployments.

This module provides a Rich-based progress display that works with
the DeployProgressTracker from the deployment pipeline.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .deploy.progress import DeployProgressEvent, DeployProgressInfo, DeployProgressTracker
from .utils import format_size

_STAGE_LABELS = {
    "connecting": "Connecting...",
    "backing_up": "Backing up remote files...",
    "deleting": "Deleting remote files...",
    "scanning": "Scanning local directory...",
    "uploading": "Uploading...",
}


class DeployProgressDisplay:
    """Rich-based progress display for a deployment.

    Shows one task line that follows the current stage and, during the
    upload stage, the number of files transferred out of the manifest total.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the progress display."""
        self._console = console
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_tracker(self) -> DeployProgressTracker:
        """Create a DeployProgressTracker that updates this display."""
        return DeployProgressTracker(callback=self._handle_event)

    def _print(self, message: str) -> None:
        if self._progress is not None:
            self._progress.console.print(message, highlight=False)

    def _handle_event(self, info: DeployProgressInfo) -> None:
        """Handle a progress event from the tracker.

        Args:
            info: Progress information
        """
        if self._progress is None or self._task is None:
            return

        if info.event == DeployProgressEvent.STAGE_START:
            self._progress.update(
                self._task,
                description=_STAGE_LABELS.get(info.stage or "", info.stage or ""),
            )

        elif info.event == DeployProgressEvent.CONNECTED:
            self._print(f"[green]✓[/green] {escape(info.message)}")

        elif info.event == DeployProgressEvent.STAGE_COMPLETE:
            if info.message:
                self._print(f"[green]✓[/green] {escape(info.message)}")

        elif info.event == DeployProgressEvent.UPLOAD_START:
            self._progress.update(
                self._task,
                description=f"Uploading {escape(info.filename or '')} ({format_size(info.bytes_total)})",
                total=info.total_files,
                completed=info.transferred_files,
            )

        elif info.event == DeployProgressEvent.UPLOAD_COMPLETE:
            self._progress.update(
                self._task,
                total=info.total_files,
                completed=info.transferred_files,
            )

        elif info.event == DeployProgressEvent.UPLOAD_ERROR:
            self._print(f"[red]✗[/red] {escape(info.filename or '')}: {escape(str(info.error))}")

        elif info.event == DeployProgressEvent.LOG:
            if "trying to continue" in info.message:
                self._print(f"[yellow]![/yellow] {escape(info.message)}")

    def __enter__(self) -> "DeployProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self._console,
            transient=False,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._task is not None:
                self._progress.update(
                    self._task,
                    description="Deployment failed" if exc_type else "Deployment complete",
                )
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_deploy_with_progress(pipeline_factory) -> list[str]:
    """Run a deployment with a Rich progress display.

    Args:
        pipeline_factory: Callable taking a DeployProgressTracker and
            returning a DeployPipeline

    Returns:
        Upload results of the pipeline
    """
    with DeployProgressDisplay() as display:
        tracker = display.create_tracker()
        return pipeline_factory(tracker).deploy()

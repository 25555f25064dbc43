"""Deployment core: path filtering, tree walks and the staged pipeline."""

from .filters import matches_pattern, should_include
from .pipeline import ConnectionStatus, DeployPipeline, DeployStage, deploy
from .progress import DeployProgressEvent, DeployProgressInfo, DeployProgressTracker
from .remote import RemoteTreeBackup, RemoteTreeDeleter, StageOutcome, best_effort
from .scanner import (
    LocalScanner,
    UploadManifest,
    manifest_file_count,
    prune_manifest,
    scan_local_tree,
)
from .uploader import UploadExecutor

__all__ = [
    "DeployPipeline",
    "DeployStage",
    "ConnectionStatus",
    "deploy",
    "should_include",
    "matches_pattern",
    "LocalScanner",
    "UploadManifest",
    "scan_local_tree",
    "prune_manifest",
    "manifest_file_count",
    "RemoteTreeDeleter",
    "RemoteTreeBackup",
    "StageOutcome",
    "best_effort",
    "UploadExecutor",
    "DeployProgressEvent",
    "DeployProgressInfo",
    "DeployProgressTracker",
]

"""Local directory scanning producing the upload manifest."""

import logging
from pathlib import Path
from typing import Optional, Sequence

from ..exceptions import DeployScanError
from ..utils import join_remote
from .filters import should_include

logger = logging.getLogger(__name__)

UploadManifest = dict[str, list[str]]
"""Relative directory (``/``, ``/css``, ...) -> file names to upload from it.

Keys keep insertion order: a directory always precedes its descendants.
"""


def prune_manifest(manifest: UploadManifest) -> UploadManifest:
    """Return a copy without the directories that have nothing to upload."""
    return {key: names for key, names in manifest.items() if names}


def manifest_file_count(manifest: UploadManifest) -> int:
    """Total number of files listed in a manifest."""
    return sum(len(names) for names in manifest.values())


def _local_dir(local_root: Path, rel_dir: str) -> Path:
    return local_root / rel_dir.lstrip("/")


class LocalScanner:
    """Walks a local tree and collects the files selected by the patterns.

    Examples:
        >>> scanner = LocalScanner(["*.html", "*.css"], ["*draft*"])
        >>> manifest = scanner.scan(Path("site"))
        >>> manifest
        {'/': ['index.html'], '/css': ['app.css']}
    """

    def __init__(self, includes: Sequence[str], excludes: Optional[Sequence[str]] = None):
        """Initialize scanner.

        Args:
            includes: Include glob patterns
            excludes: Exclude glob patterns
        """
        self.includes = list(includes)
        self.excludes = list(excludes or [])

    def scan(self, local_root: Path, rel_dir: str = "/") -> UploadManifest:
        """Recursively scan ``local_root/rel_dir``.

        Subdirectories without any selected file (at any depth) do not
        appear in the result. The entry for ``rel_dir`` itself is always
        present, possibly with an empty list.

        Args:
            local_root: Root of the local tree
            rel_dir: Directory to scan, relative to local_root, rooted at ``/``

        Returns:
            Upload manifest

        Raises:
            DeployScanError: If the directory does not exist or cannot be read
        """
        local_root = Path(local_root)
        full_dir = _local_dir(local_root, rel_dir)
        if not full_dir.exists():
            raise DeployScanError(f"{full_dir} is not an existing location", code="ENOENT")
        if not full_dir.is_dir():
            raise DeployScanError(f"{full_dir} is not a directory", code="ENOTDIR")

        try:
            children = sorted(full_dir.iterdir(), key=lambda p: p.name)
        except PermissionError as e:
            raise DeployScanError(f"Cannot read {full_dir}: {e}", code="EACCES") from e

        manifest: UploadManifest = {rel_dir: []}

        for child in children:
            child_rel = join_remote(rel_dir, child.name)

            if child.is_symlink() and child.is_dir():
                logger.debug(f"Skipping symlinked directory: {child_rel}")
                continue

            if child.is_dir():
                sub_manifest = prune_manifest(self.scan(local_root, child_rel))
                # Keys are unique relative paths, so update never overwrites
                manifest.update(sub_manifest)
            elif should_include(self.includes, self.excludes, child_rel):
                manifest[rel_dir].append(child.name)
            else:
                logger.debug(f"Not included: {child_rel}")

        return manifest


def scan_local_tree(
    includes: Sequence[str],
    excludes: Optional[Sequence[str]],
    local_root: Path,
    rel_dir: str = "/",
) -> UploadManifest:
    """Functional shortcut for ``LocalScanner(includes, excludes).scan(...)``."""
    return LocalScanner(includes, excludes).scan(local_root, rel_dir)

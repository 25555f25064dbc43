"""Include/exclude path filtering."""

import posixpath
from typing import Optional, Sequence

from ..utils import glob_match


def _in_dot_directory(path: str) -> bool:
    return any(part.startswith(".") for part in path.split("/")[:-1])


def matches_pattern(
    rel_path: str,
    pattern: str,
    match_base_in_dot_dirs: bool = True,
) -> bool:
    """Check a relative path against one glob pattern.

    A pattern without ``/`` is also tried against the base name alone, so
    ``*.html`` matches ``index.html`` as well as ``blog/post/index.html``.

    Args:
        rel_path: POSIX path relative to the local root (leading ``/`` optional)
        pattern: Glob pattern
        match_base_in_dot_dirs: Whether the base name fallback applies to
            files below a directory whose name starts with ``.``

    Returns:
        True if the path matches
    """
    path = rel_path.lstrip("/")
    if glob_match(pattern, path):
        return True
    if "/" in pattern:
        return False
    if not match_base_in_dot_dirs and _in_dot_directory(path):
        return False
    return glob_match(pattern, posixpath.basename(path))


def should_include(
    includes: Sequence[str],
    excludes: Optional[Sequence[str]],
    rel_path: str,
) -> bool:
    """Decide whether a local file takes part in the upload.

    The path is included if it matches at least one include pattern and
    none of the exclude patterns. Wildcards never select dotfiles, and
    files inside dot-directories (``.git/config``) are only selected by a
    pattern naming the directory, such as ``.well-known/**``. Exclude
    patterns still apply to them by base name.

    Args:
        includes: Include patterns (at least one must match)
        excludes: Exclude patterns (none may match); None or empty disables
        rel_path: POSIX path relative to the local root

    Returns:
        True if the file should be uploaded

    Examples:
        >>> should_include(["*.html"], ["*draft*"], "blog/index.html")
        True
        >>> should_include(["*.html"], ["*draft*"], "draft.html")
        False
        >>> should_include(["*", "**/*"], None, ".env")
        False
    """
    included = any(
        matches_pattern(rel_path, p, match_base_in_dot_dirs=False) for p in includes
    )
    if included and excludes:
        included = not any(matches_pattern(rel_path, p) for p in excludes)
    return included

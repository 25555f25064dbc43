"""Utility functions for pyftpdeploy."""

import posixpath
import re
from datetime import datetime
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

DEFAULT_FTP_PORT: int = 21
DEFAULT_SFTP_PORT: int = 22

# Socket timeout for control and data connections (seconds)
DEFAULT_TIMEOUT: float = 30.0

# Block size used when streaming remote files to disk
DEFAULT_BLOCK_SIZE: int = 64 * 1024

# strftime format of the folder name a backup pass is stored under
BACKUP_TIMESTAMP_FORMAT: str = "%Y-%m-%d_%H%M%S"

ENV_PASSWORD: str = "PYFTPDEPLOY_PASSWORD"


# =============================================================================
# Glob matching utilities
# =============================================================================

GLOB_CHARS = frozenset("*?[")

# Keeps wildcards from matching the leading dot of a path segment
_NO_DOT = r"(?!\.)"


def is_glob_pattern(value: str) -> bool:
    """Check if a string contains glob wildcard characters.

    Examples:
        >>> is_glob_pattern("*.txt")
        True
        >>> is_glob_pattern("folder/file.txt")
        False
    """
    return any(c in GLOB_CHARS for c in value)


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a glob pattern into an anchored regular expression.

    Supported syntax:
        ``*``      any run of characters except ``/``
        ``**``     as a whole path segment, any number of segments (``**/``
                   may match nothing, so ``**/*.css`` also matches
                   ``app.css``); elsewhere the same as ``*``
        ``?``      exactly one character except ``/``
        ``[seq]``  one character in seq, ``[!seq]`` one character not in seq

    A segment starting with ``.`` is only matched by a pattern segment that
    itself starts with ``.``: ``*`` does not match ``.env`` and ``**/*``
    does not match ``.git/config``, while ``.*`` matches ``.env``.

    Args:
        pattern: Glob pattern

    Returns:
        Compiled regex that must match the whole string
    """
    i, n = 0, len(pattern)
    parts: list[str] = []
    while i < n:
        c = pattern[i]
        segment_start = i == 0 or pattern[i - 1] == "/"
        whole_segment = pattern[i + 2 : i + 3] in ("", "/")
        if segment_start and pattern[i : i + 2] == "**" and whole_segment:
            if i + 2 < n:
                parts.append(rf"(?:{_NO_DOT}[^/]*/)*")
                i += 3
            else:
                parts.append(rf"{_NO_DOT}[^/]*(?:/{_NO_DOT}[^/]*)*")
                i += 2
            continue
        if segment_start and c != ".":
            parts.append(_NO_DOT)
        if c == "*":
            if pattern[i : i + 2] == "**":
                i += 1
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                # Unclosed bracket is a literal
                parts.append(re.escape(c))
            else:
                seq = pattern[i + 1 : j].replace("\\", "\\\\")
                if seq[0] in "!^":
                    seq = "^" + seq[1:]
                parts.append(f"[{seq}]")
                i = j
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def glob_match(pattern: str, name: str) -> bool:
    """Case-sensitive glob match of ``name`` against ``pattern``.

    Examples:
        >>> glob_match("*.txt", "file.txt")
        True
        >>> glob_match("file?.txt", "file12.txt")
        False
    """
    return glob_to_regex(pattern).match(name) is not None


# =============================================================================
# Remote path utilities
# =============================================================================


def join_remote(*parts: str) -> str:
    """Join remote path segments with ``/`` and normalize the result.

    Unlike ``posixpath.join`` a segment with a leading slash does not
    discard the segments before it, so manifest keys such as ``/css`` can be
    appended to a remote root.

    Examples:
        >>> join_remote("/var/www", "/css", "app.css")
        '/var/www/css/app.css'
        >>> join_remote("/var/www", "/")
        '/var/www'
    """
    segments = [p for p in parts if p]
    if not segments:
        return "/"
    joined = "/".join(segments)
    # normpath keeps a leading "//" on POSIX; collapse it
    normalized = posixpath.normpath(joined)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def relative_remote_path(path: str, root: str) -> str:
    """Return ``path`` relative to ``root`` (both remote POSIX paths)."""
    return posixpath.relpath(join_remote(path), join_remote(root))


# =============================================================================
# Formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """Return the folder name token for a backup pass.

    Examples:
        >>> backup_timestamp(datetime(2024, 3, 5, 14, 7, 9))
        '2024-03-05_140709'
    """
    return (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
